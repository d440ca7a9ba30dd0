# server/core/security.py

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from passlib.context import CryptContext
from config import Settings


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

RESET_TOKEN_BYTES = 20


class InvalidTokenError(Exception):
    """
    Raised when a JWT has a bad signature, is expired or has no subject.
    """


def utcnow() -> datetime:
    # naive UTC, matching what SQLite DateTime columns hand back
    return datetime.now(timezone.utc).replace(tzinfo=None)


# -------------------------------
# Passwords
# -------------------------------

def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # NUL bytes and malformed hashes are rejected by the bcrypt backend
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def dummy_verify() -> None:
    """
    Spends the same time as a real bcrypt check so unknown usernames
    cannot be told apart from wrong passwords.
    """
    pwd_context.dummy_verify()


# -------------------------------
# JWT
# -------------------------------

def _create_token(subject, secret: str, expires_delta: timedelta, algorithm: str) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(subject),
        "iat": now,
        "exp": now + expires_delta,
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def _decode_subject(token: str, secret: str, algorithm: str) -> str:
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as e:
        raise InvalidTokenError(str(e)) from e

    subject = payload.get("sub")
    if not subject:
        raise InvalidTokenError("Token has no subject")
    return str(subject)


def create_access_token(user_id, settings: Settings) -> str:
    return _create_token(
        user_id,
        settings.jwt_access_token_secret,
        timedelta(minutes=settings.access_token_expire_minutes),
        settings.jwt_algorithm,
    )


def create_refresh_token(user_id, settings: Settings) -> str:
    return _create_token(
        user_id,
        settings.jwt_refresh_token_secret,
        timedelta(days=settings.refresh_token_expire_days),
        settings.jwt_algorithm,
    )


def decode_access_token(token: str, settings: Settings) -> str:
    """Returns the user id carried by a valid access token."""
    return _decode_subject(token, settings.jwt_access_token_secret, settings.jwt_algorithm)


def decode_refresh_token(token: str, settings: Settings) -> str:
    """Returns the user id carried by a valid refresh token."""
    return _decode_subject(token, settings.jwt_refresh_token_secret, settings.jwt_algorithm)


# -------------------------------
# Password reset tokens
# -------------------------------

def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_reset_token(settings: Settings) -> tuple[str, str, datetime]:
    """
    Creates a random reset token.

    Returns the plain token (mailed to the user), its SHA-256 digest and
    the expiration time. Only the digest and expiration are persisted.
    """
    token = secrets.token_hex(RESET_TOKEN_BYTES)
    expiration = utcnow() + timedelta(minutes=settings.reset_token_expire_minutes)
    return token, hash_reset_token(token), expiration
