from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class AttemptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    created_at: datetime | None
    player_name: str
    score: int
    points: int
    correct_count: int
    total_questions: int
    time_taken: int | None = None
    # keep answers optional; usually excluded in list views
    answers: list[Any] | None = None
