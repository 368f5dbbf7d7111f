"""
Authentication API endpoints.

Provides:
- User registration
- Login (access + refresh token pair)
- Refresh token rotation and logout
- Password reset (self-service via email)
- Password change for a signed-in user
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
import logging

from core.auth import get_current_user
from core.database import get_db
from models import User
from schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginResponse,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    ResetPasswordRequest,
    TokenPairResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from services import token_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent."


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """Create an account. The response never includes the password hash."""
    return token_service.register(
        db,
        email=user_data.email,
        password=user_data.password,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
    )


@router.post("/login", response_model=LoginResponse)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """
    Exchange email + password for an access/refresh token pair.

    Unknown email and wrong password produce the same 401.
    """
    return token_service.login(db, credentials.email, credentials.password)


@router.post("/refresh", response_model=TokenPairResponse)
def refresh(request: RefreshRequest, db: Session = Depends(get_db)):
    """Rotate a refresh token. The presented token cannot be used again."""
    return token_service.refresh(db, request.refresh_token)


@router.post("/logout", response_model=MessageResponse)
def logout(request: LogoutRequest, db: Session = Depends(get_db)):
    token_service.logout(db, request.refresh_token)
    return {"message": "Logged out successfully"}


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(request: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """
    Request a password reset email.

    The response is the same whether or not the email is registered.
    """
    token_service.forgot_password(db, request.email)
    return {"message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(request: ResetPasswordRequest, db: Session = Depends(get_db)):
    """Set a new password with a reset token; signs the user out everywhere."""
    token_service.reset_password(db, request.token, request.new_password)
    return {"message": "Password has been reset. Please log in with your new password."}


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    token_service.change_password(db, current_user, request.current_password, request.new_password)
    return {"message": "Password changed successfully. Please log in again."}


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user
