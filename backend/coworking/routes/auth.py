# backend/coworking/routes/auth.py
"""
Authentication routes.

Endpoints:
    POST /auth/register - Create a member account and return a token
    POST /auth/login - Exchange email and password for a token
    GET /auth/me - Current account
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, status

from ..api.dependencies import get_auth_service, get_current_user
from ..core.exceptions import DomainException
from ..errors import handle_domain_exception
from ..models.user import User
from ..schemas.auth import Token, UserLogin, UserRegister, UserResponse
from ..services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(
    payload: UserRegister,
    auth_service: AuthService = Depends(get_auth_service),
) -> Token:
    try:
        user = await asyncio.to_thread(
            auth_service.register, payload.username, payload.email, payload.password
        )
        return Token(
            access_token=auth_service.create_token(user),
            user=UserResponse.model_validate(user),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/login", response_model=Token)
async def login(
    payload: UserLogin,
    auth_service: AuthService = Depends(get_auth_service),
) -> Token:
    try:
        user = await asyncio.to_thread(auth_service.login, payload.email, payload.password)
        return Token(
            access_token=auth_service.create_token(user),
            user=UserResponse.model_validate(user),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)
