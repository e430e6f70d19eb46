from fastapi import APIRouter, HTTPException, Depends, status
from pydantic import BaseModel, field_validator
from datetime import datetime
from utils.auth import (
    UserLogin, Token, UserResponse, PasswordChange,
    get_user_by_email, verify_password, create_access_token,
    get_current_active_user, get_password_hash, user_to_response,
    check_password_length
)
from models import User, Invitation
import uuid
import logging

# Configure logging
logger = logging.getLogger("auth")
logger.setLevel(logging.DEBUG)

router = APIRouter()

class RegisterRequest(BaseModel):
    token: str
    name: str
    password: str

    @field_validator('password')
    def password_must_be_strong(cls, v):
        return check_password_length(v)

class InviteInfo(BaseModel):
    valid: bool
    email: str
    role: str

async def get_valid_invitation(token: str) -> Invitation:
    """
    Look up an unused, unexpired invitation or raise 400/404.
    """
    invitation = await Invitation.filter(token=token).first()
    if invitation is None:
        raise HTTPException(status_code=404, detail="Einladung nicht gefunden")
    if invitation.used_at is not None:
        raise HTTPException(status_code=400, detail="Einladung wurde bereits verwendet")
    if invitation.expires_at.replace(tzinfo=None) < datetime.utcnow():
        raise HTTPException(status_code=400, detail="Einladung ist abgelaufen")
    return invitation

@router.post("/login", response_model=Token)
async def login_for_access_token(credentials: UserLogin):
    """
    Login with email and password to get a JWT token
    """
    logger.debug(f"Login attempt for email: {credentials.email}")

    try:
        user = await get_user_by_email(credentials.email)
        if not user or not verify_password(credentials.password, user.password_hash):
            logger.warning(f"Login failed for: {credentials.email}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Ungültige E-Mail oder Passwort",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not user.is_active:
            logger.warning(f"Login rejected for inactive user: {user.email}")
            raise HTTPException(status_code=403, detail="Benutzerkonto ist deaktiviert")

        # Update last login time
        user.last_login = datetime.utcnow()
        await user.save()

        access_token = create_access_token(data={"sub": str(user.id)})

        logger.info(f"Login successful for user: {user.email}")
        return Token(access_token=access_token, token_type="bearer", user=user_to_response(user))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during login: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Login failed: {str(e)}"
        )

@router.get("/me", response_model=UserResponse)
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    """
    Get current user information
    """
    return user_to_response(current_user)

@router.post("/change-password")
async def change_password(request: PasswordChange, current_user: User = Depends(get_current_active_user)):
    """
    Change the password of the logged in user. The current password is required.
    """
    if not verify_password(request.current_password, current_user.password_hash):
        logger.warning(f"Password change with wrong current password: {current_user.email}")
        raise HTTPException(status_code=400, detail="Aktuelles Passwort ist falsch")

    current_user.password_hash = get_password_hash(request.new_password)
    await current_user.save()
    logger.info(f"Password changed for user: {current_user.email}")
    return {"success": True, "message": "Passwort geändert"}

@router.get("/verify-invite/{token}", response_model=InviteInfo)
async def verify_invite(token: str):
    """
    Check an invitation token before showing the registration form.
    """
    invitation = await get_valid_invitation(token)
    role = invitation.role.value if hasattr(invitation.role, "value") else str(invitation.role)
    return InviteInfo(valid=True, email=invitation.email, role=role)

@router.post("/register", response_model=Token)
async def register_user(request: RegisterRequest):
    """
    Register a new user from an invitation. The invitation is consumed and
    the new user is logged in right away.
    """
    logger.debug("Registration attempt with invitation token")

    try:
        invitation = await get_valid_invitation(request.token)

        if await get_user_by_email(invitation.email):
            logger.warning(f"Registration attempt with existing email: {invitation.email}")
            raise HTTPException(status_code=400, detail="E-Mail ist bereits registriert")

        user = await User.create(
            id=str(uuid.uuid4()),
            email=invitation.email.lower(),
            name=request.name,
            role=invitation.role,
            password_hash=get_password_hash(request.password),
            last_login=datetime.utcnow()
        )
        invitation.used_at = datetime.utcnow()
        await invitation.save()

        logger.info(f"User registered successfully: {user.email}")
        access_token = create_access_token(data={"sub": str(user.id)})
        return Token(access_token=access_token, token_type="bearer", user=user_to_response(user))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during registration: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Registration failed: {str(e)}"
        )
