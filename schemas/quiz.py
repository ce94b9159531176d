# quiz/schemas/quiz.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from schemas.questions import QuestionOut

# ---------- Draw ----------


class QuizOut(BaseModel):
    questions: List[QuestionOut]


class MarkUsedRequest(BaseModel):
    id: str = Field(min_length=1)
    difficulty: str


class MarkUsedResponse(BaseModel):
    ok: bool
    added: bool
    difficulty: str


# ---------- Submit ----------


class AnswerIn(BaseModel):
    question_id: str = Field(min_length=1)
    user_answer: int = Field(ge=0, le=3)


class SubmitRequest(BaseModel):
    player_name: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9\s\-_.]+$")
    time_taken: float = Field(ge=0, le=86400)  # seconds
    answers: List[AnswerIn] = Field(min_length=1, max_length=100)


class AnswerResult(BaseModel):
    question_id: str
    user_answer: int
    correct_answer: Optional[int] = None
    is_correct: bool
    known: bool = True


class SubmitResponse(BaseModel):
    ok: bool
    attempt_id: Optional[int] = None
    score: int
    points: int
    correct_count: int
    total_questions: int
    results: List[AnswerResult]
