# Импортируем все модели, чтобы Base.metadata и строковые relationship
# видели полный набор таблиц.
from .base import Base
from .user import User
from .profile import Profile
from .like import Like
from .match import Match
from .conversation import Conversation
from .message import Message
from .block import Block
from .match_score import MatchScore

__all__ = [
    "Base",
    "User",
    "Profile",
    "Like",
    "Match",
    "Conversation",
    "Message",
    "Block",
    "MatchScore",
]
