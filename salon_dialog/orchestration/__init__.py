from .router import MessageRouter, get_message_router

__all__ = ["MessageRouter", "get_message_router"]
