from pydantic import BaseModel


class RotationStateOut(BaseModel):
    difficulty: str
    used: list[str]
    last_reset: int
    version: int | None = None
