"""mb CLI commands."""
