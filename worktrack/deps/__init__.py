from .session import get_repository, get_session_repository, require_admin, require_session

__all__ = ["get_repository", "get_session_repository", "require_admin", "require_session"]
