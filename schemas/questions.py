# quiz/schemas/questions.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class QuestionOut(BaseModel):
    id: str
    text: str
    options: List[str]
    correct_answer: int
    category: Optional[str] = None
    difficulty: str


class QuestionListItem(QuestionOut):
    # true when the question has been served in the current rotation cycle
    used: bool = False


class QuestionIn(BaseModel):
    text: str = Field(min_length=10, max_length=1000)
    options: List[str] = Field(min_length=4, max_length=4)
    correct_answer: int = Field(ge=0, le=3)
    category: str = Field(default="", max_length=128)
    difficulty: str


class QuestionCreated(BaseModel):
    ok: bool
    id: str
