from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from typing import List, Optional, Dict
from datetime import datetime
from collections import Counter, defaultdict
from tortoise.exceptions import DoesNotExist, IntegrityError
import asyncio
import logging

from models import Montageteam, AufmassForm, User
from services.workflow import normalize_status, TRASH, VALID_STATUSES
from utils.auth import get_current_active_user, get_admin_user

router = APIRouter()
logger = logging.getLogger("montageteams")

class MontageteamCreate(BaseModel):
    name: str

class MontageteamUpdate(BaseModel):
    name: Optional[str] = None
    is_active: Optional[bool] = None

class MontageteamResponse(BaseModel):
    id: int
    name: str
    is_active: bool
    created_at: datetime

class TeamStats(BaseModel):
    montageteam: str
    total: int
    byStatus: Dict[str, int]

def team_to_response(team: Montageteam) -> MontageteamResponse:
    return MontageteamResponse(id=team.id, name=team.name, is_active=team.is_active, created_at=team.created_at)

@router.get("/montageteams", response_model=List[MontageteamResponse])
async def list_montageteams(include_inactive: bool = False, current_user: User = Depends(get_current_active_user)):
    query = Montageteam.all() if include_inactive else Montageteam.filter(is_active=True)
    teams = await query.order_by("name")
    return [team_to_response(t) for t in teams]

@router.post("/montageteams", response_model=MontageteamResponse)
async def create_montageteam(request: MontageteamCreate, admin: User = Depends(get_admin_user)):
    name = request.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name darf nicht leer sein")
    try:
        team = await Montageteam.create(name=name)
    except IntegrityError:
        raise HTTPException(status_code=400, detail=f"Montageteam '{name}' existiert bereits")
    logger.info(f"Montageteam '{name}' created by {admin.email}")
    return team_to_response(team)

@router.put("/montageteams/{team_id}", response_model=MontageteamResponse)
async def update_montageteam(team_id: int, request: MontageteamUpdate, admin: User = Depends(get_admin_user)):
    try:
        team = await Montageteam.get(id=team_id)
    except DoesNotExist:
        raise HTTPException(status_code=404, detail="Montageteam nicht gefunden")

    if request.name is not None:
        team.name = request.name.strip()
    if request.is_active is not None:
        team.is_active = request.is_active
    try:
        await team.save()
    except IntegrityError:
        raise HTTPException(status_code=400, detail=f"Montageteam '{team.name}' existiert bereits")
    return team_to_response(team)

@router.delete("/montageteams/{team_id}")
async def delete_montageteam(team_id: int, admin: User = Depends(get_admin_user)):
    try:
        team = await Montageteam.get(id=team_id)
    except DoesNotExist:
        raise HTTPException(status_code=404, detail="Montageteam nicht gefunden")
    await team.delete()
    logger.info(f"Montageteam '{team.name}' deleted by {admin.email}")
    return {"success": True, "message": "Montageteam gelöscht"}

@router.get("/stats")
async def get_stats(current_user: User = Depends(get_current_active_user)):
    """
    Dashboard counters: active forms in total, per status, and the trash.
    """
    statuses, with_pdf = await asyncio.gather(
        AufmassForm.all().values_list("status", flat=True),
        AufmassForm.filter(pdf_data__isnull=False).exclude(status=TRASH).count(),
    )
    counts = Counter(normalize_status(s) for s in statuses)
    by_status = {s: counts.get(s, 0) for s in VALID_STATUSES if s != TRASH}
    return {
        "total": sum(by_status.values()),
        "byStatus": by_status,
        "papierkorb": counts.get(TRASH, 0),
        "withPdf": with_pdf,
    }

@router.get("/stats/montageteam", response_model=List[TeamStats])
async def get_montageteam_stats(current_user: User = Depends(get_current_active_user)):
    """
    Active forms per assigned montage team, split by status.
    """
    rows = await AufmassForm.filter(montageteam__isnull=False).exclude(status=TRASH).values("montageteam", "status")
    per_team: Dict[str, Counter] = defaultdict(Counter)
    for row in rows:
        if row["montageteam"]:
            per_team[row["montageteam"]][normalize_status(row["status"])] += 1
    return [
        TeamStats(montageteam=team, total=sum(counts.values()), byStatus=dict(counts))
        for team, counts in sorted(per_team.items())
    ]
