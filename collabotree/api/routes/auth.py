"""
Auth API Routes
===============

  POST /api/v1/auth/register -- Create a buyer or student account
  POST /api/v1/auth/login    -- Exchange email + password for an access token
  GET  /api/v1/auth/me       -- Profile of the authenticated user
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from collabotree.api.deps import CurrentUser, DBSession
from collabotree.api.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    TokenOut,
    UserOut,
)
from collabotree.api.schemas.common import ApiResponse
from collabotree.models.user import UserRole
from collabotree.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=ApiResponse[TokenOut],
    status_code=status.HTTP_201_CREATED,
    summary="Register a buyer or student account",
)
async def register(body: RegisterRequest, db: DBSession) -> ApiResponse[TokenOut]:
    result = await auth_service.register(
        db,
        email=body.email,
        password=body.password,
        name=body.name,
        role=UserRole(body.role),
    )
    return ApiResponse[TokenOut](
        message="Account created successfully.",
        data=TokenOut(
            access_token=result.access_token,
            expires_at=result.expires_at,
            user=UserOut.model_validate(result.user),
        ),
    )


@router.post(
    "/login",
    response_model=ApiResponse[TokenOut],
    summary="Log in with email and password",
)
async def login(body: LoginRequest, db: DBSession) -> ApiResponse[TokenOut]:
    try:
        result = await auth_service.login(db, body.email, body.password)
    except auth_service.AuthenticationError as exc:
        logger.info("Login failed for %s: %s", body.email, exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return ApiResponse[TokenOut](
        message="Login successful",
        data=TokenOut(
            access_token=result.access_token,
            expires_at=result.expires_at,
            user=UserOut.model_validate(result.user),
        ),
    )


@router.get(
    "/me",
    response_model=ApiResponse[UserOut],
    summary="Get the authenticated user's profile",
)
async def me(current_user: CurrentUser) -> ApiResponse[UserOut]:
    return ApiResponse[UserOut](data=UserOut.model_validate(current_user))
