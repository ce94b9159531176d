from __future__ import annotations

from fastapi import APIRouter, Depends

from catalog import reload_catalog
from deps.auth import require_admin
from deps.errors import to_http
from errors import RotationError
from rotation import RotationState, get_engine
from schemas.rotation import RotationStateOut
from tiers import normalize_difficulty

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _state_out(tier: str, state: RotationState) -> dict:
    return {
        "difficulty": tier,
        "used": list(state.used),
        "last_reset": state.last_reset,
        "version": state.version,
    }


@router.post("/reload")
def reload_questions():
    try:
        n = reload_catalog()
    except RotationError as e:
        raise to_http(e) from e
    return {"ok": True, "count": n}


@router.get("/rotation/{difficulty}", response_model=RotationStateOut)
def rotation_state(difficulty: str):
    try:
        tier = normalize_difficulty(difficulty)
        state = get_engine().state(tier)
    except RotationError as e:
        raise to_http(e) from e
    return _state_out(tier, state)


@router.post("/rotation/{difficulty}/reset", response_model=RotationStateOut)
def reset_rotation(difficulty: str):
    try:
        tier = normalize_difficulty(difficulty)
        state = get_engine().reset(tier)
    except RotationError as e:
        raise to_http(e) from e
    return _state_out(tier, state)
