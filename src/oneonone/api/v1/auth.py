"""Development login.

Production identity comes from the external provider, which mints the
bearer tokens. POST /auth/test-login issues a token for a throwaway user
of the requested role and is unavailable in production unless
ENABLE_TEST_LOGIN is set.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel

from src.oneonone.admin.schemas import AuditAction
from src.oneonone.api.deps import _get_directory_repository, record_audit
from src.oneonone.config import Environment, get_settings
from src.oneonone.core.security import token_for_user
from src.oneonone.directory.schemas import Role, UserCreate

router = APIRouter(prefix="/auth", tags=["auth"])

_TEST_NAMES = {
    Role.EMPLOYEE: "Test Employee",
    Role.REPORTER: "Test Reporter",
    Role.SUPER_ADMIN: "Test Admin",
}


class TestLoginRequest(BaseModel):
    role: Role = Role.EMPLOYEE


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    email: str
    role: str


def _test_login_enabled() -> bool:
    settings = get_settings()
    return settings.ENABLE_TEST_LOGIN or settings.ENVIRONMENT != Environment.production


@router.post("/test-login", response_model=TokenResponse)
async def test_login(body: TestLoginRequest, request: Request) -> TokenResponse:
    """Find or create test-{role}@test.com and return a token for it."""
    if not _test_login_enabled():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    repo = _get_directory_repository(request)
    email = f"test-{body.role.value.lower()}@test.com"
    user = await repo.get_user_by_email(email)
    if user is None:
        user = await repo.create_user(
            UserCreate(email=email, name=_TEST_NAMES[body.role], role=body.role)
        )

    token = token_for_user(user)
    await record_audit(request, user, AuditAction.LOGIN, "User", user.id, {"test_login": True})
    return TokenResponse(
        access_token=token,
        user_id=str(user.id),
        email=user.email,
        role=user.role.value,
    )
