from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlmodel import Session

from ..database import get_session
from ..dependencies import require_admin
from ..errors import InvalidInput, SeasonNotFound
from ..services import groups as service

router = APIRouter(
    prefix="/admin/groups",
    tags=["admin-groups"],
    dependencies=[Depends(require_admin)],
)


class ManualGroupRequest(BaseModel):
    """Schema for ordering the ambiguous rows of a group."""
    season_id: int
    group_code: str
    ordered_team_ids: List[int]
    reason: Optional[str] = None


class ManualThirdsRequest(BaseModel):
    """Schema for settling a tie at the third-place cutoff."""
    season_id: int
    qualified_team_ids: List[int]
    reason: Optional[str] = None


class ManualSlotRequest(BaseModel):
    """Schema for forcing the occupant of a bracket slot (team_id null clears it)."""
    season_id: int
    match_number: int
    side: str
    team_id: Optional[int] = None
    reason: Optional[str] = None


def run(operation, *args, **kwargs):
    """Call a service operation, mapping engine errors to HTTP errors."""
    try:
        return operation(*args, **kwargs)
    except SeasonNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except InvalidInput as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/standings")
async def get_standings(
    season_id: int = Query(...),
    db: Session = Depends(get_session)
):
    return run(service.compute_standings, db, season_id)


@router.get("/thirds")
async def get_thirds(
    season_id: int = Query(...),
    db: Session = Depends(get_session)
):
    return run(service.compute_thirds, db, season_id)


@router.post("/close")
async def close_groups(
    season_id: int = Query(...),
    db: Session = Depends(get_session)
):
    return run(service.close_groups, db, season_id)


@router.post("/resolve-ko-placeholders")
async def resolve_ko_placeholders(
    season_id: int = Query(...),
    db: Session = Depends(get_session)
):
    return run(service.resolve_ko_placeholders, db, season_id)


@router.patch("/standings/manual")
async def set_manual_group_order(
    body: ManualGroupRequest,
    db: Session = Depends(get_session)
):
    return run(
        service.set_manual_group_order,
        db, body.season_id, body.group_code, body.ordered_team_ids, body.reason,
    )


@router.patch("/thirds/manual")
async def set_manual_thirds(
    body: ManualThirdsRequest,
    db: Session = Depends(get_session)
):
    return run(service.set_manual_thirds, db, body.season_id, body.qualified_team_ids, body.reason)


@router.get("/bracket-slots")
async def get_bracket_slots(
    season_id: int = Query(...),
    db: Session = Depends(get_session)
):
    return run(service.get_bracket_slots, db, season_id)


@router.patch("/bracket-slots/manual")
async def set_bracket_slot_manual(
    body: ManualSlotRequest,
    db: Session = Depends(get_session)
):
    return run(
        service.set_bracket_slot_manual,
        db, body.season_id, body.match_number, body.side, body.team_id, body.reason,
    )
