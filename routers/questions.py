from __future__ import annotations

import time
import uuid
from typing import Dict, List, Optional, Set

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select

from catalog import QuestionModel, parse_documents
from db import SessionLocal
from deps.auth import require_admin
from deps.errors import to_http
from errors import InvalidArgument, RotationError
from models import Question
from rotation import get_engine, question_sort_key
from schemas.questions import QuestionCreated, QuestionIn, QuestionListItem, QuestionOut
from tiers import TIERS, canonical_tier, normalize_difficulty

router = APIRouter(prefix="/questions", tags=["questions"])


def _now_ms() -> int:
    return int(time.time() * 1000)


def _tier_or_400(difficulty: str) -> str:
    try:
        return normalize_difficulty(difficulty)
    except InvalidArgument as e:
        raise to_http(e) from e


def _load_all() -> List[QuestionModel]:
    with SessionLocal() as db:
        docs = [row.to_document() for row in db.scalars(select(Question))]
    # malformed rows are skipped, same as the rotation path
    return sorted(parse_documents(docs).values(), key=question_sort_key)


def _used_by_tier(tiers) -> Dict[str, Set[str]]:
    engine = get_engine()
    return {t: set(engine.state(t).used) for t in tiers if t in TIERS}


@router.get("", response_model=List[QuestionListItem])
def list_questions(
    difficulty: Optional[str] = None,
    category: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
):
    qs = _load_all()

    if difficulty:
        tier = canonical_tier(difficulty)
        qs = [q for q in qs if q.tier == tier]

    if category:
        wanted = category.strip().lower()
        qs = [q for q in qs if (q.category or "").strip().lower() == wanted]

    if limit is not None:
        qs = qs[:limit]

    try:
        used = _used_by_tier({q.tier for q in qs})
    except RotationError as e:
        raise to_http(e) from e
    return [{**q.to_stub().model_dump(), "used": q.id in used.get(q.tier, ())} for q in qs]


@router.get("/{qid}", response_model=QuestionOut)
def get_question_detail(qid: str):
    with SessionLocal() as db:
        row = db.get(Question, qid)
        doc = row.to_document() if row else None
    q = parse_documents([doc]).get(qid) if doc else None
    if not q:
        raise HTTPException(status_code=404, detail="question not found")
    return q.to_stub().model_dump()


@router.post(
    "",
    response_model=QuestionCreated,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def create_question(body: QuestionIn):
    tier = _tier_or_400(body.difficulty)
    now = _now_ms()
    qid = uuid.uuid4().hex
    with SessionLocal() as db:
        db.add(
            Question(
                id=qid,
                text=body.text.strip(),
                options=list(body.options),
                correct_answer=body.correct_answer,
                category=body.category.strip() or None,
                difficulty=tier,
                created_at=now,
                updated_at=now,
            )
        )
        db.commit()
    return {"ok": True, "id": qid}


@router.put("/{qid}", response_model=QuestionOut, dependencies=[Depends(require_admin)])
def update_question(qid: str, body: QuestionIn):
    tier = _tier_or_400(body.difficulty)
    with SessionLocal() as db:
        row = db.get(Question, qid)
        if not row:
            raise HTTPException(status_code=404, detail="question not found")
        # created_at is kept so the question keeps its place in rotation order
        row.text = body.text.strip()
        row.options = list(body.options)
        row.correct_answer = body.correct_answer
        row.category = body.category.strip() or None
        row.difficulty = tier
        row.updated_at = _now_ms()
        db.commit()
        doc = row.to_document()
    return QuestionModel.model_validate(doc).to_stub().model_dump()


@router.delete("/{qid}", dependencies=[Depends(require_admin)])
def delete_question(qid: str):
    with SessionLocal() as db:
        row = db.get(Question, qid)
        if not row:
            raise HTTPException(status_code=404, detail="question not found")
        db.delete(row)
        db.commit()
    # stale ids left in rotation records are tolerated by the engine
    return {"ok": True}
