# quiz/catalog.py

from __future__ import annotations

import json
import logging
import math
import os
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from db import SessionLocal
from errors import CatalogUnavailable
from models import Question
from tiers import canonical_tier

logger = logging.getLogger(__name__)

_BASE = Path(__file__).resolve().parent
_DATA_DIR = Path(os.getenv("QUESTIONS_DATA_DIR", str(_BASE / "data" / "questions")))

# Keys that mark a dict as a single question record rather than a category bucket
_RECORD_KEYS = {"question", "text", "options", "correctAnswer", "correct_answer", "difficulty"}


class QuestionStub(BaseModel):
    id: str
    text: str
    options: List[str]
    correct_answer: int
    category: Optional[str] = None
    difficulty: str


class QuestionModel(BaseModel):
    """
    Canonical in-memory question. Accepts both the legacy document keys
    (question / correctAnswer / createdAt) and the column names.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    text: str = Field(validation_alias=AliasChoices("text", "question"))
    options: List[str] = Field(min_length=4, max_length=4)
    correct_answer: int = Field(
        default=0, ge=0, le=3, validation_alias=AliasChoices("correct_answer", "correctAnswer")
    )
    category: Optional[str] = None
    difficulty: str
    created_at: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )

    @field_validator("created_at", mode="before")
    @classmethod
    def _finite_or_none(cls, v: Any) -> Optional[float]:
        # anything that is not a finite number sorts as 0 downstream
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        return v if math.isfinite(v) else None

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _missing_answer_is_zero(cls, v: Any) -> Any:
        return 0 if v is None or v == "" else v

    @property
    def tier(self) -> str:
        return canonical_tier(self.difficulty)

    def to_stub(self) -> QuestionStub:
        return QuestionStub(
            id=self.id,
            text=self.text,
            options=list(self.options),
            correct_answer=self.correct_answer,
            category=self.category,
            difficulty=self.difficulty,
        )


# --- Document shapes ---------------------------------------------------------------


def _is_category_bucket(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and bool(value)
        and not (_RECORD_KEYS & value.keys())
        and all(isinstance(v, list) for v in value.values())
    )


def iter_documents(raw: Any) -> Iterable[Any]:
    """
    Flatten either physical layout into a stream of question documents:
      - flat:   {id: {question, options, ...}}   (or a plain list of records)
      - nested: {category: {difficulty: [{id, question, options, ...}]}}
    Anything that is not a dict is passed through so the parser can skip it.
    """
    if isinstance(raw, list):
        yield from raw
        return
    if not isinstance(raw, dict):
        return

    for key, value in raw.items():
        if _is_category_bucket(value):
            for difficulty, records in value.items():
                for idx, rec in enumerate(records):
                    if not isinstance(rec, dict):
                        yield rec
                        continue
                    doc = dict(rec)
                    doc["id"] = str(rec.get("id") or f"{key}_{difficulty}_{idx}")
                    doc["category"] = key
                    doc["difficulty"] = difficulty
                    yield doc
        elif isinstance(value, dict):
            doc = dict(value)
            doc["id"] = str(key)
            yield doc
        else:
            yield value


def parse_documents(docs: Iterable[Any]) -> Dict[str, QuestionModel]:
    questions: Dict[str, QuestionModel] = {}
    for doc in docs:
        if not isinstance(doc, dict):
            logger.warning("Skipping non-object catalog entry: %r", type(doc).__name__)
            continue
        if "options" not in doc:
            logger.warning("Skipping catalog entry %s: missing options", doc.get("id"))
            continue
        try:
            q = QuestionModel.model_validate(doc)
        except ValidationError as e:
            logger.warning(
                "Skipping catalog entry %s: %d validation error(s)", doc.get("id"), e.error_count()
            )
            continue
        questions[q.id] = q
    return questions


def normalize_catalog(raw: Any) -> Dict[str, QuestionModel]:
    return parse_documents(iter_documents(raw))


def _filter_tier(questions: Dict[str, QuestionModel], tier: str) -> Dict[str, QuestionModel]:
    return {qid: q for qid, q in questions.items() if q.tier == tier}


# --- Catalog readers ---------------------------------------------------------------


class DocumentCatalog:
    """Catalog over raw documents held in memory (tests, fixtures, file imports)."""

    def __init__(self, raw: Any) -> None:
        self.raw = raw

    def read_all(self, tier: str) -> Dict[str, QuestionModel]:
        # re-parse on every read so callers see edits made to ``raw`` between draws
        return _filter_tier(normalize_catalog(self.raw), tier)


class SqlCatalog:
    def __init__(self, session_factory=None) -> None:
        self._session_factory = session_factory or SessionLocal

    def read_all(self, tier: str) -> Dict[str, QuestionModel]:
        try:
            with self._session_factory() as db:
                docs = [row.to_document() for row in db.scalars(select(Question))]
        except SQLAlchemyError as e:
            raise CatalogUnavailable(f"catalog read failed: {type(e).__name__}: {e}") from e
        return _filter_tier(parse_documents(docs), tier)

    def get(self, question_id: str) -> Optional[QuestionModel]:
        try:
            with self._session_factory() as db:
                row = db.get(Question, question_id)
                doc = row.to_document() if row else None
        except SQLAlchemyError as e:
            raise CatalogUnavailable(f"catalog read failed: {type(e).__name__}: {e}") from e
        if doc is None:
            return None
        return parse_documents([doc]).get(question_id)


# --- File import -------------------------------------------------------------------


def _iter_jsonl(p: Path) -> Iterable[Any]:
    with p.open("r", encoding="utf-8") as f:
        for line in f:
            s = line.strip()
            if not s or s.startswith("#") or s.startswith("//"):
                continue
            try:
                yield json.loads(s)
            except json.JSONDecodeError:
                # Skip malformed rows instead of failing the whole import
                logger.warning("Skipping malformed line in %s", p.name)
                continue


def _iter_json(p: Path) -> Iterable[Any]:
    with p.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable JSON file %s", p.name)
            return
    yield from iter_documents(data)


def load_question_files(data_dir: Optional[Path] = None) -> Dict[str, QuestionModel]:
    data_dir = data_dir or _DATA_DIR
    questions: Dict[str, QuestionModel] = {}
    if not data_dir.exists():
        logger.warning("Question data dir %s does not exist", data_dir)
        return questions

    for p in sorted(data_dir.rglob("*")):
        if not p.is_file():
            continue
        suf = p.suffix.lower()
        if suf == ".jsonl":
            source = _iter_jsonl(p)
        elif suf == ".json":
            source = _iter_json(p)
        else:
            continue
        questions.update(parse_documents(source))
    return questions


def import_questions(questions: Dict[str, QuestionModel], session_factory=None) -> int:
    """Upsert by id. Difficulty is stored canonical; created_at defaults to now."""
    session_factory = session_factory or SessionLocal
    now = int(time.time() * 1000)
    try:
        with session_factory() as db:
            for q in questions.values():
                db.merge(
                    Question(
                        id=q.id,
                        text=q.text,
                        options=list(q.options),
                        correct_answer=q.correct_answer,
                        category=q.category,
                        difficulty=q.tier,
                        created_at=(
                            int(q.created_at)
                            if q.created_at is not None and math.isfinite(q.created_at)
                            else now
                        ),
                        updated_at=now,
                    )
                )
            db.commit()
    except SQLAlchemyError as e:
        raise CatalogUnavailable(f"catalog import failed: {type(e).__name__}: {e}") from e
    return len(questions)


# Public API
def reload_catalog(data_dir: Optional[Path] = None) -> int:
    n = import_questions(load_question_files(data_dir))
    logger.info("Imported %d question(s) into the catalog", n)
    return n
