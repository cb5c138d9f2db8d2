"""Structured log event model for mbctl.

Every lifecycle log line is a SystemEvent serialized to a dict, so the
console formatter can print the message and the file formatter can write
the full record as one JSONL line.
"""

from __future__ import annotations

__all__ = ["SystemEvent"]

from typing import Any, Optional

from pydantic import BaseModel, Field


class SystemEvent(BaseModel):
    """One system log entry (written to --logfile as JSONL).

    Note: 'time' is None when created, populated by ISO8601Formatter during logging.
    """

    # --- core ---
    time: Optional[str] = Field(
        None,
        description="ISO 8601 timestamp (UTC), added by formatter during serialization",
    )
    event: Optional[str] = Field(
        None,
        description="Machine-friendly event name, e.g. 'server_started', 'stale_pid_removed'",
    )
    message: str = Field(description="Human-readable log message")

    # --- process context ---
    pid: Optional[int] = Field(None, description="Process identifier the event refers to")
    pidfile: Optional[str] = Field(None, description="PID file path")
    port: Optional[int] = Field(None, description="Admin port")

    # --- config context ---
    configfile: Optional[str] = Field(None, description="Config file path")
    imposter_count: Optional[int] = Field(None, description="Number of imposters loaded")

    # --- errors ---
    error_type: Optional[str] = Field(None, description="Exception class name")
    error_message: Optional[str] = Field(None, description="Exception message")

    # --- additional structured data ---
    details: Optional[dict[str, Any]] = Field(None, description="Extra event-specific data")

    model_config = {"extra": "forbid"}
