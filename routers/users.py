from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, EmailStr
from typing import List, Optional
from datetime import datetime, timedelta
import secrets
import logging
from tortoise.exceptions import DoesNotExist
from models import User, UserRole, Invitation
from utils.auth import (
    UserResponse, UserCreate, get_admin_user, get_user_by_email,
    create_user, user_to_response
)
from config import settings

logger = logging.getLogger("users")

router = APIRouter()

class UserUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

class InvitationCreate(BaseModel):
    email: EmailStr
    role: UserRole = UserRole.USER

class InvitationResponse(BaseModel):
    id: int
    email: str
    role: str
    token: str
    invite_link: str
    expires_at: datetime
    used_at: Optional[datetime] = None
    created_at: datetime

def invite_link(token: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/register?token={token}"

def invitation_to_response(invitation: Invitation) -> InvitationResponse:
    return InvitationResponse(
        id=invitation.id,
        email=invitation.email,
        role=invitation.role.value if hasattr(invitation.role, "value") else str(invitation.role),
        token=invitation.token,
        invite_link=invite_link(invitation.token),
        expires_at=invitation.expires_at,
        used_at=invitation.used_at,
        created_at=invitation.created_at,
    )

@router.get("/users", response_model=List[UserResponse])
async def list_users(admin: User = Depends(get_admin_user)):
    """
    List all users (admin only).
    """
    users = await User.all().order_by("created_at")
    return [user_to_response(u) for u in users]

@router.post("/users", response_model=UserResponse)
async def add_user(user_data: UserCreate, admin: User = Depends(get_admin_user)):
    """
    Create a user directly, without an invitation (admin only).
    """
    user = await create_user(user_data)
    logger.info(f"Admin {admin.email} created user {user.email}")
    return user_to_response(user)

@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(user_id: str, request: UserUpdate, admin: User = Depends(get_admin_user)):
    """
    Change name, role or active flag of a user. Admins cannot deactivate
    themselves or take away their own admin role.
    """
    try:
        user = await User.get(id=user_id)
    except (DoesNotExist, ValueError):
        raise HTTPException(status_code=404, detail="Benutzer nicht gefunden")

    is_self = str(user.id) == str(admin.id)
    if is_self and request.is_active is False:
        raise HTTPException(status_code=400, detail="Sie können sich nicht selbst deaktivieren")
    if is_self and request.role is not None and request.role != UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Sie können Ihre eigene Admin-Rolle nicht entfernen")

    if request.name is not None:
        user.name = request.name
    if request.role is not None:
        user.role = request.role
    if request.is_active is not None:
        user.is_active = request.is_active
    await user.save()

    logger.info(f"User {user.email} updated by {admin.email}")
    return user_to_response(user)

@router.delete("/users/{user_id}")
async def delete_user(user_id: str, admin: User = Depends(get_admin_user)):
    """
    Delete a user (admin only). Admins cannot delete themselves.
    """
    try:
        user = await User.get(id=user_id)
    except (DoesNotExist, ValueError):
        raise HTTPException(status_code=404, detail="Benutzer nicht gefunden")

    if str(user.id) == str(admin.id):
        raise HTTPException(status_code=400, detail="Sie können sich nicht selbst löschen")

    await user.delete()
    logger.info(f"User {user.email} deleted by {admin.email}")
    return {"success": True, "message": "Benutzer gelöscht"}

@router.get("/invitations", response_model=List[InvitationResponse])
async def list_invitations(admin: User = Depends(get_admin_user)):
    """
    List open (unused) invitations.
    """
    invitations = await Invitation.filter(used_at__isnull=True).order_by("-created_at")
    return [invitation_to_response(i) for i in invitations]

@router.post("/invitations", response_model=InvitationResponse)
async def create_invitation(request: InvitationCreate, admin: User = Depends(get_admin_user)):
    """
    Invite a new user by email. Rejects addresses that already belong to a
    user or that have a pending, unexpired invitation.
    """
    email = request.email.lower()
    if await get_user_by_email(email):
        raise HTTPException(status_code=400, detail="Benutzer mit dieser E-Mail existiert bereits")

    pending = await Invitation.filter(
        email=email, used_at__isnull=True, expires_at__gt=datetime.utcnow()
    ).exists()
    if pending:
        raise HTTPException(status_code=400, detail="Für diese E-Mail existiert bereits eine offene Einladung")

    invitation = await Invitation.create(
        token=secrets.token_urlsafe(32),
        email=email,
        role=request.role,
        invited_by=admin,
        expires_at=datetime.utcnow() + timedelta(days=settings.INVITATION_VALID_DAYS),
    )
    logger.info(f"Invitation created for {email} by {admin.email}")
    return invitation_to_response(invitation)

@router.delete("/invitations/{invitation_id}")
async def delete_invitation(invitation_id: int, admin: User = Depends(get_admin_user)):
    try:
        invitation = await Invitation.get(id=invitation_id)
    except DoesNotExist:
        raise HTTPException(status_code=404, detail="Einladung nicht gefunden")
    await invitation.delete()
    return {"success": True, "message": "Einladung gelöscht"}
