"""Per-site selector tables consumed by ``chat_bridge.profiles``."""
