from toolchat.memory.interactions import InteractionLog
from toolchat.memory.models import Interaction, SessionRecord
from toolchat.memory.session_manager import SessionManager
from toolchat.memory.store import MemoryStore

__all__ = [
    "Interaction",
    "InteractionLog",
    "MemoryStore",
    "SessionManager",
    "SessionRecord",
]
