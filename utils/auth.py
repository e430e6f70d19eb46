from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import HTTPException, Depends, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, EmailStr, field_validator
import uuid
import logging
from models import User, UserRole
from config import settings

# Configure logging
logger = logging.getLogger("auth.utils")
logger.setLevel(logging.DEBUG)

# Configure JWT
SECRET_KEY = settings.JWT_SECRET_KEY
ALGORITHM = settings.JWT_ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES

MIN_PASSWORD_LENGTH = 6

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# OAuth2 password bearer for token extraction
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login")

def check_password_length(v: str) -> str:
    if len(v) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Passwort muss mindestens {MIN_PASSWORD_LENGTH} Zeichen lang sein')
    return v

# Models for authentication
class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

class TokenData(BaseModel):
    user_id: Optional[str] = None

class UserCreate(BaseModel):
    email: EmailStr
    password: str
    name: Optional[str] = None
    role: UserRole = UserRole.USER

    @field_validator('password')
    def password_must_be_strong(cls, v):
        return check_password_length(v)

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class PasswordChange(BaseModel):
    current_password: str
    new_password: str

    @field_validator('new_password')
    def new_password_must_be_strong(cls, v):
        return check_password_length(v)

def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role.value if isinstance(user.role, UserRole) else str(user.role),
        is_active=user.is_active,
        created_at=user.created_at,
        last_login=user.last_login,
    )

# Password management
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Error verifying password: {str(e)}")
        # Return False on verification error rather than raising exception
        return False

def get_password_hash(password: str) -> str:
    """Hash a password for storing"""
    try:
        return pwd_context.hash(password)
    except Exception as e:
        logger.error(f"Error hashing password: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error processing password"
        )

# JWT token functions
def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create a new JWT token"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    try:
        return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    except Exception as e:
        logger.error(f"Error creating JWT token: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error creating authentication token"
        )

async def user_from_token(token: Optional[str]) -> User:
    """
    Resolve the user a JWT belongs to. Used by the bearer dependency and by
    download links that carry the token as a query parameter.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str = payload.get("sub")

        if user_id is None:
            logger.warning("Token missing 'sub' claim")
            raise credentials_exception

        token_data = TokenData(user_id=user_id)
    except JWTError as e:
        logger.error(f"JWT validation error: {str(e)}")
        raise credentials_exception

    try:
        user = await User.filter(id=token_data.user_id).first()
    except Exception as e:
        logger.error(f"Database error while retrieving user: {str(e)}")
        raise credentials_exception

    if user is None:
        logger.warning(f"User not found for ID: {token_data.user_id}")
        raise credentials_exception
    return user

async def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    """Extract and validate the current user from a JWT token"""
    return await user_from_token(token)

# Role-based authorization
async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Check if the current user is active"""
    if not current_user.is_active:
        logger.warning(f"Inactive user attempted access: {current_user.email}")
        raise HTTPException(status_code=403, detail="Benutzerkonto ist deaktiviert")
    return current_user

async def get_admin_user(current_user: User = Depends(get_current_active_user)) -> User:
    """Check if the current user is an admin"""
    if current_user.role != UserRole.ADMIN:
        logger.warning(f"Non-admin user attempted admin action: {current_user.email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions"
        )
    return current_user

def is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN

# User management functions
async def get_user_by_email(email: str) -> Optional[User]:
    """Get a user by email"""
    try:
        return await User.filter(email=email.lower()).first()
    except Exception as e:
        logger.error(f"Error retrieving user by email: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error while retrieving user"
        )

async def create_user(user_data: UserCreate) -> User:
    """Create a new user"""
    try:
        existing_user = await get_user_by_email(user_data.email)
        if existing_user:
            logger.warning(f"Registration attempt with existing email: {user_data.email}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        user = await User.create(
            id=str(uuid.uuid4()),
            email=user_data.email.lower(),
            name=user_data.name,
            role=user_data.role,
            password_hash=get_password_hash(user_data.password)
        )

        logger.info(f"New user created: {user.email}")
        return user
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating user: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error creating user: {str(e)}"
        )

async def ensure_default_admin() -> Optional[User]:
    """
    Create the configured default admin when no admin exists yet.
    """
    if await User.filter(role=UserRole.ADMIN).exists():
        return None
    user = await User.create(
        id=str(uuid.uuid4()),
        email=settings.DEFAULT_ADMIN_EMAIL.lower(),
        name=settings.DEFAULT_ADMIN_NAME,
        role=UserRole.ADMIN,
        password_hash=get_password_hash(settings.DEFAULT_ADMIN_PASSWORD)
    )
    logger.info(f"Default admin created: {user.email}")
    return user
