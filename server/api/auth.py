# server/api/auth.py

import logging
from datetime import datetime
from typing import Annotated
from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from config import Settings, get_settings
from core.errors import AppError
from core.mailer import Mailer, MailDeliveryError, get_mailer
from core.security import (
    InvalidTokenError,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    dummy_verify,
    generate_reset_token,
    get_password_hash,
    hash_reset_token,
    utcnow,
    verify_password,
)
from database import get_db
from models.user import User as UserModel


logger = logging.getLogger(__name__)

router = APIRouter()
bearer_scheme = HTTPBearer(auto_error=False)


# -------------------------------
# Request / Response Schemas
# -------------------------------

def _reject_nul(value: str) -> str:
    if "\x00" in value:
        raise ValueError("Password must not contain NUL characters")
    return value


Password = Annotated[str, Field(min_length=1), AfterValidator(_reject_nul)]


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: Password


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1)
    name: str = Field(min_length=1)
    email: EmailStr
    password: Password


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: Password


class UpdatePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    password: Password
    new_password: Annotated[Password, Field(alias="newPassword")]


class UserOut(BaseModel):
    """
    Public projection of a user. Password hash and tokens never leave
    the server.
    """
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    name: str
    email: str
    created_at: datetime | None = None


# -------------------------------
# Helpers
# -------------------------------

def authenticate_user(db: Session, username: str, password: str):
    user = db.query(UserModel).filter(UserModel.username == username).first()
    if not user:
        dummy_verify()
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def set_refresh_cookie(response: JSONResponse, refresh_token: str, settings: Settings):
    response.set_cookie(
        key=settings.cookie_name,
        value=refresh_token,
        max_age=settings.refresh_token_max_age,
        path=settings.api_prefix,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )


def clear_refresh_cookie(response: JSONResponse, settings: Settings):
    response.delete_cookie(
        key=settings.cookie_name,
        path=settings.api_prefix,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )


def send_auth_token(user: UserModel, status_code: int, db: Session, settings: Settings) -> JSONResponse:
    """
    Issues a fresh access/refresh token pair for the user.
    The refresh token replaces the stored one and is set as an HTTP-only
    cookie; pending changes on the user are committed together with it.
    """
    access_token = create_access_token(user.id, settings)
    refresh_token = create_refresh_token(user.id, settings)

    user.refresh_token = refresh_token
    db.commit()
    db.refresh(user)

    response = JSONResponse(
        status_code=status_code,
        content={
            "success": True,
            "access_token": access_token,
            "user": UserOut.model_validate(user).model_dump(mode="json"),
        },
    )
    set_refresh_cookie(response, refresh_token, settings)
    return response


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> UserModel:
    credentials_error = AppError("Not authorized to access this resource", status.HTTP_401_UNAUTHORIZED)
    if credentials is None:
        raise credentials_error
    try:
        user_id = int(decode_access_token(credentials.credentials, settings))
    except (InvalidTokenError, ValueError):
        raise credentials_error

    user = db.query(UserModel).filter(UserModel.id == user_id).first()
    if user is None:
        raise credentials_error
    return user


# -------------------------------
# Authentication Endpoints
# -------------------------------

@router.post("/login")
def login(req: LoginRequest, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    user = authenticate_user(db, req.username, req.password)
    if not user:
        logger.warning("Failed login for username=%s", req.username)
        raise AppError("Incorrect credentials", status.HTTP_401_UNAUTHORIZED)

    return send_auth_token(user, status.HTTP_200_OK, db, settings)


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(req: RegisterRequest, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    user_exists = db.query(UserModel).filter(
        or_(UserModel.username == req.username, UserModel.email == req.email)
    ).first()
    if user_exists:
        raise AppError("Username or email is already registered", status.HTTP_400_BAD_REQUEST)

    new_user = UserModel(
        username=req.username,
        name=req.name,
        email=req.email,
        hashed_password=get_password_hash(req.password),
    )
    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AppError("Username or email is already registered", status.HTTP_400_BAD_REQUEST)
    db.refresh(new_user)

    logger.info("Registered user id=%s username=%s", new_user.id, new_user.username)
    return send_auth_token(new_user, status.HTTP_201_CREATED, db, settings)


@router.post("/logout")
def logout(request: Request, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    """
    Drops the stored refresh token and clears the cookie.
    Succeeds even when no user holds the token.
    """
    refresh_token = request.cookies.get(settings.cookie_name)
    if not refresh_token:
        raise AppError("You are already logged out", status.HTTP_400_BAD_REQUEST)

    user = db.query(UserModel).filter(UserModel.refresh_token == refresh_token).first()
    if user:
        user.refresh_token = None
        db.commit()
        logger.info("Logged out user id=%s", user.id)

    response = JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, "message": "You have been logged out"},
    )
    clear_refresh_cookie(response, settings)
    return response


@router.post("/forgot")
def forgot_password(
    req: ForgotPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Stores a hashed reset token on the user and mails the plain token.
    If the mail cannot be sent the stored token is rolled back.
    """
    user = db.query(UserModel).filter(UserModel.email == req.email).first()
    if not user:
        raise AppError(f"User with email ({req.email}) was not found", status.HTTP_404_NOT_FOUND)

    reset_token, user.reset_password_token, user.reset_password_expiration = generate_reset_token(settings)
    db.commit()

    host = request.headers.get("host", request.url.netloc)
    reset_url = f"{request.url.scheme}://{host}/account/reset?token={reset_token}"
    message = (
        f"Here is the password recovery link:\n\n{reset_url}\n\n"
        "If you have not requested this email, then ignore it."
    )

    try:
        mailer.send(user.email, settings.reset_email_subject, message)
    except MailDeliveryError:
        user.clear_reset_token()
        db.commit()
        raise AppError(f"Cannot send email to ({req.email})", status.HTTP_500_INTERNAL_SERVER_ERROR)

    logger.info("Password recovery mail sent to user id=%s", user.id)
    return {"success": True, "message": f"Recovery link sent to: {user.email}"}


@router.post("/reset/{token}")
def reset_password(
    token: str,
    req: ResetPasswordRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = db.query(UserModel).filter(
        UserModel.reset_password_token == hash_reset_token(token)
    ).first()
    if user and user.reset_password_expiration <= utcnow():
        user.clear_reset_token()
        db.commit()
        user = None
    if not user:
        raise AppError("Reset token has been expired", status.HTTP_403_FORBIDDEN)

    user.hashed_password = get_password_hash(req.password)
    user.clear_reset_token()

    logger.info("Password reset for user id=%s", user.id)
    return send_auth_token(user, status.HTTP_200_OK, db, settings)


@router.put("/password")
def update_password(
    req: UpdatePasswordRequest,
    current_user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if req.password == req.new_password:
        raise AppError("Cannot use same password", status.HTTP_400_BAD_REQUEST)

    if not verify_password(req.password, current_user.hashed_password):
        raise AppError("Incorrect password", status.HTTP_403_FORBIDDEN)

    current_user.hashed_password = get_password_hash(req.new_password)
    db.commit()

    logger.info("Password updated for user id=%s", current_user.id)
    return {"success": True, "message": "Password has been updated"}


@router.get("/refresh")
def refresh_access_token(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Mints a new access token from the refresh cookie. The token must match
    the one stored on a user, verify against the refresh secret and name
    that same user as its subject.
    """
    refresh_token = request.cookies.get(settings.cookie_name)
    if not refresh_token:
        raise AppError("Unauthorized", status.HTTP_401_UNAUTHORIZED)

    user = db.query(UserModel).filter(UserModel.refresh_token == refresh_token).first()
    if not user:
        raise AppError("Access expired", status.HTTP_403_FORBIDDEN)

    try:
        subject = decode_refresh_token(refresh_token, settings)
    except InvalidTokenError:
        raise AppError("Access expired", status.HTTP_403_FORBIDDEN)
    if subject != str(user.id):
        raise AppError("Access expired", status.HTTP_403_FORBIDDEN)

    return {"success": True, "access_token": create_access_token(user.id, settings)}


@router.get("/me")
def read_users_me(current_user: UserModel = Depends(get_current_user)):
    return {"success": True, "user": UserOut.model_validate(current_user).model_dump(mode="json")}
