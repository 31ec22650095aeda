"""
Authentication service for CollaboTree.

Self-service registration of buyer and student accounts, bcrypt password
checks at login, and HS256 access tokens (PyJWT) whose ``sub`` claim is the
user id. Every request resolves its acting user through
``resolve_token_user``. Admin accounts are provisioned out of band
(``scripts/seed.py`` in development); there is no refresh or reset flow.

Login and token failures raise ``AuthenticationError`` (a ``ValueError``);
the API layer turns them into 401 responses. A taken email is a
``ConflictError``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from collabotree.core.config import settings
from collabotree.core.exceptions import ConflictError, ValidationError
from collabotree.models.user import User, UserRole

logger = logging.getLogger(__name__)

TOKEN_TYPE_ACCESS = "access"

# bcrypt ignores everything past 72 bytes
_BCRYPT_MAX_BYTES = 72


class AuthenticationError(ValueError):
    """Credentials or token rejected."""


@dataclass
class LoginResult:
    user: User
    access_token: str
    expires_at: datetime


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str, *, rounds: int = 12) -> str:
    """Return the bcrypt hash of ``password``.

    ``rounds`` is the bcrypt cost factor; tests lower it to keep fixtures fast.
    """
    digest = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds))
    return digest.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def create_access_token(
    user_id: uuid.UUID,
    *,
    role: Optional[str] = None,
    expires_in: Optional[timedelta] = None,
) -> tuple[str, datetime]:
    """Issue a signed access token for ``user_id``.

    Returns:
        Tuple of (token, expires_at).
    """
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + (
        expires_in or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims = {
        "sub": str(user_id),
        "type": TOKEN_TYPE_ACCESS,
        "iat": issued_at,
        "exp": expires_at,
        "jti": uuid.uuid4().hex,
    }
    if role is not None:
        claims["role"] = role
    token = jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, expires_at


def read_access_token(token: str) -> uuid.UUID:
    """Verify ``token`` and return the user id from its subject claim.

    Raises:
        AuthenticationError: Expired, tampered, wrong type or malformed subject.
    """
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Access token has expired.")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid access token.")

    if claims.get("type") != TOKEN_TYPE_ACCESS:
        raise AuthenticationError("Invalid token type. Expected an access token.")

    try:
        return uuid.UUID(claims["sub"])
    except (ValueError, TypeError):
        raise AuthenticationError("Invalid token: malformed subject.")


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

SELF_SERVICE_ROLES = frozenset({UserRole.BUYER, UserRole.STUDENT})


async def register(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    name: str,
    role: UserRole = UserRole.BUYER,
) -> LoginResult:
    """Create a buyer or student account and log it in.

    Raises:
        ValidationError: The role cannot be self-assigned.
        ConflictError: The email is already registered.
    """
    if role not in SELF_SERVICE_ROLES:
        raise ValidationError(
            "Invalid role",
            details=[{"field": "role", "message": "Must be BUYER or STUDENT"}],
        )

    email = normalize_email(email)
    existing = (
        await db.execute(select(User.id).where(User.email == email))
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError("User with this email already exists.")

    user = User(
        email=email,
        name=name.strip(),
        password_hash=hash_password(password, rounds=settings.bcrypt_rounds),
        role=role,
        is_verified=False,
        is_active=True,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError("User with this email already exists.") from exc

    token, expires_at = create_access_token(user.id, role=user.role.value)
    logger.info("User %s registered as %s", user.id, user.role.value)
    return LoginResult(user=user, access_token=token, expires_at=expires_at)


# ---------------------------------------------------------------------------
# Login / request user
# ---------------------------------------------------------------------------

async def login(db: AsyncSession, email: str, password: str) -> LoginResult:
    """Check ``email``/``password`` and issue an access token.

    Unknown email and wrong password produce the same message.

    Raises:
        AuthenticationError: Bad credentials or a deactivated account.
    """
    user = (
        await db.execute(select(User).where(User.email == normalize_email(email)))
    ).scalar_one_or_none()

    if (
        user is None
        or user.password_hash is None
        or not verify_password(password, user.password_hash)
    ):
        raise AuthenticationError("Invalid email or password.")
    if not user.is_active:
        raise AuthenticationError("This account has been deactivated.")

    token, expires_at = create_access_token(user.id, role=user.role.value)
    logger.info("User %s logged in", user.id)
    return LoginResult(user=user, access_token=token, expires_at=expires_at)


async def resolve_token_user(db: AsyncSession, token: str) -> User:
    """Return the active user a bearer token was issued to.

    Raises:
        AuthenticationError: Invalid token, unknown or deactivated user.
    """
    user_id = read_access_token(token)
    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationError("User not found.")
    if not user.is_active:
        raise AuthenticationError("Account is no longer active.")
    return user
