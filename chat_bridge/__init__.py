"""chat-bridge: drive a chat web page from a WebSocket control channel."""
