"""Application-wide constants for mbctl.

Constants that define application behavior.
For per-invocation settings, see options.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    # CLI defaults
    "DEFAULT_PORT",
    "DEFAULT_PID_FILE",
    "DEFAULT_LOG_FILE",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_SAVE_FILE",
    "DEFAULT_IP_WHITELIST",
    "IP_WHITELIST_DELIMITER",
    "LOG_LEVELS",
    # Admin API
    "IMPOSTERS_PATH",
    "API_KEY_HEADER",
    "DEFAULT_HTTP_TIMEOUT_SECONDS",
    "LOCAL_HOSTS",
    # Lifecycle timing
    "STOP_POLL_INTERVAL_SECONDS",
    "STOP_TIMEOUT_SECONDS",
    "SERVER_STARTUP_TIMEOUT_SECONDS",
    "SERVER_SHUTDOWN_TIMEOUT_SECONDS",
    "HTTP_LISTEN_BACKLOG",
    # Config templates
    "TEMPLATE_HELPER_NAMES",
]

# ============================================================================
# Application Identity
# ============================================================================

APP_NAME: str = "mb"

# ============================================================================
# CLI Defaults
# ============================================================================

DEFAULT_PORT: int = 2525
DEFAULT_PID_FILE: str = "mb.pid"
DEFAULT_LOG_FILE: str = "mb.log"
DEFAULT_LOG_LEVEL: str = "info"
DEFAULT_SAVE_FILE: str = "mb.json"

# Everyone is allowed unless --ipWhitelist narrows it
DEFAULT_IP_WHITELIST: tuple[str, ...] = ("*",)
IP_WHITELIST_DELIMITER: str = "|"

# mb log level names, in increasing severity
LOG_LEVELS: tuple[str, ...] = ("debug", "info", "warn", "error")

# ============================================================================
# Admin API
# ============================================================================

IMPOSTERS_PATH: str = "/imposters"
API_KEY_HEADER: str = "x-api-key"

DEFAULT_HTTP_TIMEOUT_SECONDS: float = 10.0

# Client addresses admitted when --localOnly is set
LOCAL_HOSTS: frozenset[str] = frozenset({"127.0.0.1", "::1", "::ffff:127.0.0.1", "localhost"})

# ============================================================================
# Lifecycle Timing
# ============================================================================

# stop polls for the PID file to disappear, then forces it
STOP_POLL_INTERVAL_SECONDS: float = 0.1
STOP_TIMEOUT_SECONDS: float = 1.0

# Time allowed for uvicorn to report started after the socket is bound
SERVER_STARTUP_TIMEOUT_SECONDS: float = 10.0
SERVER_SHUTDOWN_TIMEOUT_SECONDS: float = 5.0

HTTP_LISTEN_BACKLOG: int = 100

# ============================================================================
# Config Templates
# ============================================================================

# Names under which the file-inclusion helper is exposed to config templates.
# "inject" is kept for configs written against older releases.
TEMPLATE_HELPER_NAMES: tuple[str, ...] = ("stringify", "inject")
