"""Identity API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from app.core.config import get_settings
from app.modules.identity.rate_limit import enforce_login_rate_limit
from app.modules.identity.schemas import AccessToken, LoginRequest, StudentRead
from app.modules.identity.service import IdentityService, get_current_student, get_identity_service

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()


@router.post("/login", response_model=AccessToken, dependencies=[Depends(enforce_login_rate_limit)])
async def login(
    payload: LoginRequest,
    response: Response,
    service: IdentityService = Depends(get_identity_service),
) -> AccessToken:
    """Sign in by student ID and email; sets the auth cookie."""
    token = await service.login(payload)
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token.access_token,
        httponly=True,
        secure=settings.app_env.strip().lower() in {"production", "prod"},
        samesite="strict",
        max_age=settings.auth_cookie_max_age_days * 24 * 60 * 60,
        path="/",
    )
    return token


@router.post("/logout")
async def logout(response: Response) -> dict[str, str]:
    """Clear the auth cookie."""
    response.delete_cookie(key=settings.auth_cookie_name, path="/")
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=StudentRead)
async def get_me(current_student=Depends(get_current_student)) -> StudentRead:
    """Return profile of authenticated student."""
    return StudentRead.model_validate(current_student)
