from .session_manager import SessionContextStore, SessionKey, get_session_store

__all__ = ["SessionContextStore", "SessionKey", "get_session_store"]
