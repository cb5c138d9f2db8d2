"""mbctl: command-line control surface for an mb mock server.

Starts, stops and restarts the server process, coordinates invocations
through a PID file and synchronizes imposter configuration with the
running server over its admin API.
"""

__version__ = "0.1.0"
