from __future__ import annotations

import logging
import math
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from catalog import QuestionStub, SqlCatalog
from db import SessionLocal
from deps.errors import to_http
from errors import InvalidArgument, RotationError
from models import QuizAttempt
from rotation import get_engine
from schemas.quiz import (
    AnswerResult,
    MarkUsedRequest,
    MarkUsedResponse,
    QuizOut,
    SubmitRequest,
    SubmitResponse,
)
from tiers import normalize_difficulty

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quiz", tags=["quiz"])

# --- Quiz composition --------------------------------------------------------------
# Served in this order, tier by tier.
QUIZ_COMPOSITION = (
    ("easy", 3),
    ("medium", 3),
    ("hard", 3),
    ("veryHard", 1),
)
POINTS_PER_PERCENT = 10


def _dump(stubs: List[QuestionStub]) -> List[dict]:
    return [s.model_dump() for s in stubs]


@router.get("/start", response_model=QuizOut)
def start_quiz():
    engine = get_engine()
    questions: List[QuestionStub] = []
    try:
        for tier, count in QUIZ_COMPOSITION:
            questions.extend(engine.draw(tier, count))
    except RotationError as e:
        raise to_http(e) from e
    return {"questions": _dump(questions)}


@router.get("/draw", response_model=QuizOut)
def draw_questions(
    difficulty: str,
    count: int = Query(default=1, ge=0, le=100),
):
    try:
        stubs = get_engine().draw(difficulty, count)
    except RotationError as e:
        raise to_http(e) from e
    return {"questions": _dump(stubs)}


@router.post("/mark-used", response_model=MarkUsedResponse)
def mark_used(req: MarkUsedRequest):
    try:
        added = get_engine().mark_used(req.id, req.difficulty)
    except RotationError as e:
        raise to_http(e) from e
    return {"ok": True, "added": added, "difficulty": normalize_difficulty(req.difficulty)}


def _percent(correct: int, total: int) -> int:
    # half-up, so 12.5% shows as 13
    return int(math.floor(100 * correct / total + 0.5))


@router.post("/submit", response_model=SubmitResponse)
def submit_quiz(req: SubmitRequest):
    catalog = SqlCatalog()
    results: List[AnswerResult] = []
    served = []
    correct_count = 0

    try:
        for a in req.answers:
            q = catalog.get(a.question_id)
            if q is None:
                results.append(
                    AnswerResult(
                        question_id=a.question_id,
                        user_answer=a.user_answer,
                        is_correct=False,
                        known=False,
                    )
                )
                continue
            # never trust the client with the answer key
            is_correct = a.user_answer == q.correct_answer
            correct_count += int(is_correct)
            served.append(q)
            results.append(
                AnswerResult(
                    question_id=q.id,
                    user_answer=a.user_answer,
                    correct_answer=q.correct_answer,
                    is_correct=is_correct,
                )
            )
    except RotationError as e:
        raise to_http(e) from e

    total = len(results)
    score = _percent(correct_count, total)
    points = score * POINTS_PER_PERCENT

    attempt_id: Optional[int] = None
    try:
        with SessionLocal() as db:
            attempt = QuizAttempt(
                player_name=req.player_name.strip(),
                score=score,
                points=points,
                correct_count=correct_count,
                total_questions=total,
                time_taken=int(round(req.time_taken)),
                answers=[r.model_dump() for r in results],
            )
            db.add(attempt)
            db.commit()
            db.refresh(attempt)
            attempt_id = attempt.id
    except SQLAlchemyError:
        logger.exception("Failed to persist quiz attempt for %s", req.player_name)
        raise HTTPException(status_code=503, detail="could not save quiz attempt")

    # Answered questions count as served for their own tier's rotation
    engine = get_engine()
    for q in served:
        try:
            engine.mark_used(q.id, q.difficulty)
        except InvalidArgument:
            logger.warning("Question %s has no valid difficulty (%r); not marked", q.id, q.difficulty)
        except RotationError as e:
            logger.warning("Could not mark question %s as used: %s", q.id, e)

    return {
        "ok": True,
        "attempt_id": attempt_id,
        "score": score,
        "points": points,
        "correct_count": correct_count,
        "total_questions": total,
        "results": [r.model_dump() for r in results],
    }
