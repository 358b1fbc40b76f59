"""Auth endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import (
    clear_auth_cookie,
    generate_jwt,
    get_current_user_id,
    hash_password,
    set_auth_cookie,
    verify_password,
)
from ..config import Settings, get_settings
from ..database import get_db
from ..models import User
from ..schemas import (
    AuthResponse,
    LoginRequest,
    OtpRequest,
    RegisterRequest,
    SuccessResponse,
    UserResponse,
    VerifyOtpRequest,
)
from ..security import get_email_client, otp_throttle_gate
from ..services.email_client import EmailDeliveryError, ResendEmailClient
from ..services.otp import OtpThrottled, issue_otp_for_email, reset_password_with_otp

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _set_no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"
    response.headers["Pragma"] = "no-cache"


def _issue_session(response: Response, user: User, *, settings: Settings, remember_me: bool = False) -> None:
    token = generate_jwt({"sub": str(user.id), "role": user.role}, settings=settings)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication is not configured.",
        )
    set_auth_cookie(response, token=token, settings=settings, remember_me=remember_me)
    _set_no_store(response)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: RegisterRequest,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Create a customer account and start a session."""
    email = data.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered.")

    user = User(
        username=data.username,
        email=email,
        password_hash=hash_password(data.password, settings=settings),
        role="user",
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration for the same email.
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered.")
    db.refresh(user)

    _issue_session(response, user, settings=settings)
    logger.info("Registered user %s", user.id)
    return AuthResponse(user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse)
def login(
    data: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Login with email and password. The session lives in an HTTP-only cookie."""
    user = db.query(User).filter(User.email == data.email.strip().lower()).first()
    if not user or not verify_password(data.password, user.password_hash, settings=settings):
        logger.info("Failed login for %s", data.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password.")

    _issue_session(response, user, settings=settings, remember_me=data.remember_me)
    return AuthResponse(user=UserResponse.model_validate(user))


@router.post("/logout", response_model=SuccessResponse)
def logout(response: Response, settings: Settings = Depends(get_settings)):
    clear_auth_cookie(response, settings=settings)
    return SuccessResponse()


@router.get("/me", response_model=AuthResponse)
def me(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    return AuthResponse(user=UserResponse.model_validate(user))


@router.post("/request-otp", response_model=SuccessResponse)
def request_otp(
    data: OtpRequest,
    _throttled_email: str = Depends(otp_throttle_gate),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    email_client: ResendEmailClient = Depends(get_email_client),
):
    """Email a password reset code to an existing account."""
    email = data.email.strip().lower()
    if not db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No account found for that email.")

    try:
        result = issue_otp_for_email(db, email, settings=settings, email_client=email_client)
    except EmailDeliveryError:
        logger.exception("Failed to send OTP email to %s", email)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send OTP.")

    if isinstance(result, OtpThrottled):
        raise HTTPException(status_code=result.status, detail=result.error)
    return SuccessResponse(message="OTP sent.")


@router.post("/verify-otp", response_model=SuccessResponse)
def verify_otp(
    data: VerifyOtpRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Reset the password with a valid, unexpired code."""
    reset_password_with_otp(
        db,
        email=data.email.strip().lower(),
        otp=data.otp,
        new_password=data.new_password,
        settings=settings,
    )
    return SuccessResponse(message="Password updated.")
