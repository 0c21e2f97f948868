"""Auth endpoints."""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..auth import create_user_token, get_current_user
from ..config import settings
from ..database import get_db
from ..models import User
from ..schemas import LoginRequest, MessageResponse, RegisterRequest, TokenResponse, UserResponse
from ..use_cases.user_management import authenticate_use_case, register_user_use_case

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """Create an account with the requested role."""
    user = register_user_use_case(
        db=db,
        email=payload.email,
        password=payload.password,
        role_name=payload.role,
    )
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    """Login with email and password."""
    user = authenticate_use_case(db=db, email=payload.email, password=payload.password)
    logger.info("User %s logged in", user.id)
    return TokenResponse(
        access_token=create_user_token(user),
        expires_in=int(settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES) * 60,
        user=UserResponse.model_validate(user),
    )


@router.post("/logout", response_model=MessageResponse)
def logout(current_user: User = Depends(get_current_user)):
    """Tokens are stateless; the client discards its copy."""
    logger.info("User %s logged out", current_user.id)
    return MessageResponse(message="Logged out; discard the access token on the client")


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    """Get current user info."""
    return UserResponse.model_validate(current_user)
