"""Session management and persistence."""

from .manager import SessionConfig, SessionManager, SessionState

__all__ = ["SessionConfig", "SessionManager", "SessionState"]
