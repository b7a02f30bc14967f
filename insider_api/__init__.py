"""HTTP and WebSocket service for insider rooms."""
