"""
Question rotation: pick the next questions for a difficulty tier so that a
question is not served again until every other question in the tier has been.

Each tier owns one rotation record (``used`` ids in serve order + ``last_reset``).
A draw partitions the tier into unseen/seen, serves unseen first, and starts a
new cycle as soon as the unseen pool cannot cover the request.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from catalog import QuestionModel, QuestionStub, SqlCatalog
from db import SessionLocal
from errors import InvalidArgument, RotationConflict, StateUnavailable
from models import RotationRecord
from tiers import normalize_difficulty

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RotationState:
    used: List[str] = field(default_factory=list)
    last_reset: int = 0
    # optimistic concurrency token; None means the record was never persisted
    version: Optional[int] = None

    def insertion_rank(self) -> Dict[str, int]:
        rank: Dict[str, int] = {}
        for idx, qid in enumerate(self.used):
            rank.setdefault(qid, idx)
        return rank

    def copy(self) -> "RotationState":
        return RotationState(used=list(self.used), last_reset=self.last_reset, version=self.version)


class Catalog(Protocol):
    def read_all(self, tier: str) -> Dict[str, QuestionModel]: ...


class RotationStore(Protocol):
    def read_state(self, tier: str) -> Optional[RotationState]: ...

    def write_state(self, tier: str, state: RotationState) -> None: ...


# --- Stores ------------------------------------------------------------------------


class MemoryRotationStore:
    def __init__(self) -> None:
        self._records: Dict[str, RotationState] = {}
        self._lock = threading.Lock()

    def read_state(self, tier: str) -> Optional[RotationState]:
        with self._lock:
            rec = self._records.get(tier)
            return rec.copy() if rec else None

    def write_state(self, tier: str, state: RotationState) -> None:
        with self._lock:
            current = self._records.get(tier)
            current_version = current.version if current else None
            if current_version != state.version:
                raise RotationConflict(
                    f"rotation state for {tier} is at version {current_version}, "
                    f"expected {state.version}"
                )
            self._records[tier] = RotationState(
                used=list(state.used),
                last_reset=state.last_reset,
                version=(state.version or 0) + 1,
            )


class SqlRotationStore:
    def __init__(self, session_factory=None) -> None:
        self._session_factory = session_factory or SessionLocal

    def read_state(self, tier: str) -> Optional[RotationState]:
        try:
            with self._session_factory() as db:
                rec = db.get(RotationRecord, tier)
                if rec is None:
                    return None
                return RotationState(
                    used=[str(x) for x in (rec.used or [])],
                    last_reset=int(rec.last_reset or 0),
                    version=rec.version,
                )
        except SQLAlchemyError as e:
            raise StateUnavailable(f"rotation state read failed for {tier}: {e}") from e

    def write_state(self, tier: str, state: RotationState) -> None:
        try:
            with self._session_factory() as db:
                if state.version is None:
                    db.add(
                        RotationRecord(
                            tier=tier, used=list(state.used), last_reset=state.last_reset, version=1
                        )
                    )
                    try:
                        db.commit()
                    except IntegrityError as e:
                        db.rollback()
                        raise RotationConflict(
                            f"rotation state for {tier} was created concurrently"
                        ) from e
                    return

                res = db.execute(
                    update(RotationRecord)
                    .where(RotationRecord.tier == tier, RotationRecord.version == state.version)
                    .values(
                        used=list(state.used),
                        last_reset=state.last_reset,
                        version=state.version + 1,
                    )
                )
                db.commit()
        except SQLAlchemyError as e:
            raise StateUnavailable(f"rotation state write failed for {tier}: {e}") from e
        if res.rowcount != 1:
            raise RotationConflict(
                f"rotation state for {tier} changed since version {state.version}"
            )


# --- Selection ---------------------------------------------------------------------


class PoolState(str, Enum):
    FRESH = "fresh"
    PARTIAL = "partial"
    EXHAUSTED = "exhausted"
    EMPTY = "empty"


@dataclass
class Selection:
    pool_state: PoolState
    questions: List[QuestionModel]
    # ids to persist as the new ``used``; None leaves the record untouched
    next_used: Optional[List[str]]
    reset: bool = False


def _created_key(q: QuestionModel) -> float:
    v = q.created_at
    if v is None or not math.isfinite(v):
        return 0.0
    return v


def question_sort_key(q: QuestionModel) -> Tuple[float, str]:
    return (_created_key(q), q.id)


def partition(
    questions: Iterable[QuestionModel], used: Iterable[str]
) -> Tuple[List[QuestionModel], List[QuestionModel]]:
    """Split into (unseen, seen), each ordered by created_at then id."""
    used_set = set(used)
    unseen: List[QuestionModel] = []
    seen: List[QuestionModel] = []
    for q in questions:
        (seen if q.id in used_set else unseen).append(q)
    unseen.sort(key=question_sort_key)
    seen.sort(key=question_sort_key)
    return unseen, seen


def order_seen(seen: Iterable[QuestionModel], state: RotationState) -> List[QuestionModel]:
    """Earliest-served first; ids missing from ``used`` go last."""
    rank = state.insertion_rank()
    missing = len(state.used)
    return sorted(seen, key=lambda q: (rank.get(q.id, missing), question_sort_key(q)))


def classify(unseen_count: int, total: int, count: int) -> PoolState:
    if total == 0:
        return PoolState.EMPTY
    if unseen_count == 0:
        return PoolState.EXHAUSTED
    if unseen_count >= count:
        return PoolState.FRESH
    return PoolState.PARTIAL


def merge_used(used: Sequence[str], ids: Iterable[str]) -> List[str]:
    merged = list(used)
    present = set(merged)
    for qid in ids:
        if qid not in present:
            merged.append(qid)
            present.add(qid)
    return merged


def select(questions: Sequence[QuestionModel], state: RotationState, count: int) -> Selection:
    """Pure part of a draw: decide what to serve and what ``used`` becomes."""
    unseen, seen = partition(questions, state.used)
    pool_state = classify(len(unseen), len(questions), count)

    if pool_state is PoolState.EMPTY:
        return Selection(pool_state, [], None)

    if pool_state is PoolState.EXHAUSTED:
        # after the reset every question is unseen again
        picked = sorted(questions, key=question_sort_key)[:count]
        return Selection(pool_state, picked, [q.id for q in picked], reset=True)

    if pool_state is PoolState.FRESH:
        picked = unseen[:count]
        return Selection(pool_state, picked, merge_used(state.used, (q.id for q in picked)))

    picked = unseen + order_seen(seen, state)[: count - len(unseen)]
    # the new cycle starts with what was just served
    return Selection(pool_state, picked, [q.id for q in picked], reset=True)


# --- Engine ------------------------------------------------------------------------


def _check_count(count) -> int:
    if isinstance(count, bool) or not isinstance(count, int):
        raise InvalidArgument(f"count must be an integer, got {type(count).__name__}")
    if count < 0:
        raise InvalidArgument(f"count must be >= 0, got {count}")
    return count


class RotationEngine:
    def __init__(
        self,
        catalog: Catalog,
        store: RotationStore,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.catalog = catalog
        self.store = store
        self._clock = clock
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, tier: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(tier)
            if lock is None:
                lock = self._locks[tier] = threading.Lock()
            return lock

    def _load_state(self, tier: str) -> RotationState:
        state = self.store.read_state(tier)
        if state is None:
            state = RotationState(used=[], last_reset=self._clock())
        return state

    def draw(self, difficulty: str, count: int) -> List[QuestionStub]:
        count = _check_count(count)
        tier = normalize_difficulty(difficulty)
        if count == 0:
            return []

        with self._lock_for(tier):
            questions = list(self.catalog.read_all(tier).values())
            if not questions:
                logger.warning("No questions found for difficulty %s", tier)
                return []

            state = self._load_state(tier)
            sel = select(questions, state, count)

            if sel.reset:
                logger.info(
                    "Rotation reset for %s (%s): %d used id(s) discarded",
                    tier,
                    sel.pool_state.value,
                    len(state.used),
                )
                last_reset = self._clock()
            else:
                last_reset = state.last_reset

            self.store.write_state(
                tier, RotationState(used=sel.next_used, last_reset=last_reset, version=state.version)
            )
            logger.debug(
                "Drew %d/%d from %s (%s, catalog=%d)",
                len(sel.questions),
                count,
                tier,
                sel.pool_state.value,
                len(questions),
            )
            return [q.to_stub() for q in sel.questions]

    def mark_used(self, question_id: str, difficulty: str) -> bool:
        """Add one id to the tier's ``used`` set. Returns False if it was already there."""
        if not isinstance(question_id, str) or not question_id.strip():
            raise InvalidArgument("question id must be a non-empty string")
        tier = normalize_difficulty(difficulty)

        with self._lock_for(tier):
            state = self._load_state(tier)
            if question_id in state.used:
                return False
            state.used.append(question_id)
            self.store.write_state(tier, state)
            return True

    def state(self, difficulty: str) -> RotationState:
        return self._load_state(normalize_difficulty(difficulty))

    def reset(self, difficulty: str) -> RotationState:
        tier = normalize_difficulty(difficulty)
        with self._lock_for(tier):
            state = self._load_state(tier)
            fresh = RotationState(used=[], last_reset=self._clock(), version=state.version)
            self.store.write_state(tier, fresh)
            logger.info("Rotation reset for %s (manual): %d used id(s) discarded", tier, len(state.used))
            return self._load_state(tier)


_engine: Optional[RotationEngine] = None
_engine_guard = threading.Lock()


def get_engine() -> RotationEngine:
    global _engine
    with _engine_guard:
        if _engine is None:
            _engine = RotationEngine(SqlCatalog(), SqlRotationStore())
        return _engine
