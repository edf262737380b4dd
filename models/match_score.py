# models/match_score.py
from sqlalchemy import Column, BigInteger, Integer, ForeignKey, JSON, UniqueConstraint, Index
from sqlalchemy.sql import func

from .base import Base, UTCDateTime, utcnow


class MatchScore(Base):
    """Строка кэша ранжирования, которую пишет внешний ScoringEngine."""
    __tablename__ = "match_scores"

    id = Column(BigInteger, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    candidate_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    score = Column(Integer, nullable=False)
    reasons = Column(JSON, nullable=False, default=list)
    computed_at = Column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "candidate_id", name="uq_match_score_pair"),
        Index("ix_match_scores_user_score", "user_id", "score"),
    )

    def __repr__(self):
        return f"<MatchScore {self.user_id}→{self.candidate_id} score={self.score}>"
