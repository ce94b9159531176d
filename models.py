from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db import Base


class Question(Base):
    __tablename__ = "questions"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    text: Mapped[str] = mapped_column(Text)
    options: Mapped[list] = mapped_column(JSON)
    correct_answer: Mapped[int] = mapped_column(Integer, default=0)
    category: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    # stored canonical (see tiers.canonical_tier), but readers normalize again
    difficulty: Mapped[str] = mapped_column(String(32), index=True)
    # epoch milliseconds; primary ordering key for rotation
    created_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    updated_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "options": self.options,
            "correct_answer": self.correct_answer,
            "category": self.category,
            "difficulty": self.difficulty,
            "created_at": self.created_at,
        }


class RotationRecord(Base):
    """One row per difficulty tier."""

    __tablename__ = "rotation_state"
    tier: Mapped[str] = mapped_column(String(32), primary_key=True)
    used: Mapped[list] = mapped_column(JSON, default=list)  # ordered, insertion order matters
    last_reset: Mapped[int] = mapped_column(BigInteger)
    version: Mapped[int] = mapped_column(Integer, default=1)


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), index=True
    )
    player_name: Mapped[str] = mapped_column(String(100))
    score: Mapped[int] = mapped_column(Integer)  # 0-100
    points: Mapped[int] = mapped_column(Integer)
    correct_count: Mapped[int] = mapped_column(Integer)
    total_questions: Mapped[int] = mapped_column(Integer)
    time_taken: Mapped[int] = mapped_column(Integer, default=0)  # seconds
    answers: Mapped[list] = mapped_column(JSON)  # per-question results
