"""Application layer - chat orchestration."""

from .chat_service import ChatService, ChatSession, TurnCallbacks, TurnOutcome

__all__ = ["ChatService", "ChatSession", "TurnCallbacks", "TurnOutcome"]
