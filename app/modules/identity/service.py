"""Identity business logic layer."""

from __future__ import annotations

import logging
import re

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.security import (
    create_access_token,
    decode_token,
    instructor_key_header,
    oauth2_scheme,
    verify_instructor_key,
)
from app.modules.identity.models import Student
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.schemas import AccessToken, LoginRequest, StudentCreate, StudentRead
from app.shared.exceptions import (
    AuthenticationRequiredException,
    BusinessRuleException,
    ConflictException,
    UnauthorizedException,
)

settings = get_settings()
logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid student ID or email."


class IdentityService:
    """Student identity: login, token resolution and registration."""

    def __init__(self, repository: IdentityRepository) -> None:
        self.repository = repository

    @staticmethod
    def _ensure_student_id_format(student_id: str) -> None:
        if re.fullmatch(settings.student_id_pattern, student_id) is None:
            raise BusinessRuleException("Invalid ID format. Expected pattern DR-XXXX-XX")

    async def login(self, payload: LoginRequest) -> AccessToken:
        """Authenticate by ID/email pair and issue an access token."""
        self._ensure_student_id_format(payload.student_id)

        student = await self.repository.get_student_by_id(payload.student_id)
        if student is None:
            student = await self._register_on_first_login(payload)
        elif student.email.lower() != payload.email.lower():
            raise AuthenticationRequiredException(INVALID_CREDENTIALS_MESSAGE)

        access_token = create_access_token(subject=student.id, email=student.email)
        logger.info("Student %s logged in", student.id)
        return AccessToken(access_token=access_token, student=StudentRead.model_validate(student))

    async def _register_on_first_login(self, payload: LoginRequest) -> Student:
        if not settings.allow_student_self_registration:
            raise AuthenticationRequiredException(INVALID_CREDENTIALS_MESSAGE)

        if await self.repository.get_student_by_email(payload.email) is not None:
            raise AuthenticationRequiredException(INVALID_CREDENTIALS_MESSAGE)

        logger.info("Registering student %s on first login", payload.student_id)
        return await self.repository.create_student(
            student_id=payload.student_id,
            name=f"Student {payload.student_id}",
            email=payload.email,
        )

    async def create_student(self, payload: StudentCreate) -> Student:
        """Register a student on behalf of the instructor."""
        self._ensure_student_id_format(payload.id)

        if await self.repository.get_student_by_id(payload.id) is not None:
            raise ConflictException("Student with this ID already exists")
        if await self.repository.get_student_by_email(payload.email) is not None:
            raise ConflictException("Student with this email already exists")

        return await self.repository.create_student(
            student_id=payload.id,
            name=payload.name,
            email=payload.email,
            phone_number=payload.phone_number,
        )

    async def get_student_from_access_token(self, token: str) -> Student:
        """Resolve student from access token."""
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise AuthenticationRequiredException("Invalid access token")

        subject = payload.get("sub")
        if not subject:
            raise AuthenticationRequiredException("Token subject is missing")

        student = await self.repository.get_student_by_id(subject)
        if student is None:
            raise AuthenticationRequiredException("Student not found")
        return student


async def get_identity_service(session: AsyncSession = Depends(get_db_session)) -> IdentityService:
    """Dependency to provide identity service."""
    return IdentityService(IdentityRepository(session))


def _request_token(request: Request, bearer_token: str | None) -> str | None:
    return bearer_token or request.cookies.get(settings.auth_cookie_name)


async def get_current_student(
    request: Request,
    bearer_token: str | None = Depends(oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> Student:
    """Resolve authenticated student from bearer header or auth cookie."""
    token = _request_token(request, bearer_token)
    if not token:
        raise AuthenticationRequiredException("Authentication required")
    return await service.get_student_from_access_token(token)


async def get_optional_student(
    request: Request,
    bearer_token: str | None = Depends(oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> Student | None:
    """Resolve student when a valid token is present.

    Missing, expired or otherwise unusable tokens fall back to the anonymous
    view instead of failing the read.
    """
    token = _request_token(request, bearer_token)
    if not token:
        return None
    try:
        return await service.get_student_from_access_token(token)
    except (AuthenticationRequiredException, HTTPException):
        logger.debug("Ignoring unusable token on anonymous-capable route")
        return None


async def require_instructor(provided_key: str | None = Depends(instructor_key_header)) -> None:
    """Guard instructor endpoints with the shared instructor key."""
    if not verify_instructor_key(provided_key):
        raise UnauthorizedException("Instructor access required")
