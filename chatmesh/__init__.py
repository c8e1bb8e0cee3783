"""Room-based WebSocket chat server with optional Redis fan-out across instances."""

__version__ = "0.1.0"

__all__ = ["__version__"]