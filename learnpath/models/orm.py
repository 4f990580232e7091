from datetime import datetime
from typing import List

from sqlalchemy import BigInteger, Boolean, DateTime, Float, Index, Integer, JSON, String, func
from sqlalchemy.orm import Mapped, mapped_column

from learnpath.core.database import Base


class PrerequisiteSet(Base):
    """Append-only record of every resolved prerequisite list."""

    __tablename__ = "prerequisite_sets"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    prerequisites: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class QuizAttempt(Base):
    """One submitted quiz; timestamps are server-local and never updated."""

    __tablename__ = "quiz_attempts"
    __table_args__ = (
        Index("idx_qa_user_topic_ts", "user_id", "topic", "timestamp"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    quiz_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    passed: Mapped[bool] = mapped_column(Boolean, default=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
