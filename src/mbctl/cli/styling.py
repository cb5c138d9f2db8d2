"""CLI output styling utilities.

- Green for success messages (with checkmark)
- Dim for neutral/empty state messages
"""

from __future__ import annotations

__all__ = [
    "style_dim",
    "style_success",
]

import click


def style_success(message: str) -> str:
    """Style a success message with checkmark.

    Example:
        >>> click.echo(style_success("Imposters saved to mb.json"))
        ✓ Imposters saved to mb.json
    """
    return click.style(f"✓ {message}", fg="green")


def style_dim(message: str) -> str:
    """Style a neutral/empty state message as dim."""
    return click.style(message, dim=True)
