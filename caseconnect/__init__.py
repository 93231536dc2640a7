"""Case Connect: WebSocket connectivity smoke-test server and probe client."""

__version__ = "1.0.0"
