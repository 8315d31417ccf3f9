"""Directory repository -- async CRUD for users and departments."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.oneonone.directory.models import DepartmentModel, UserModel
from src.oneonone.directory.schemas import (
    Department,
    DepartmentCreate,
    Role,
    User,
    UserCreate,
    UserUpdate,
)


def _model_to_user(model: UserModel) -> User:
    return User(
        id=model.id,
        email=model.email,
        name=model.name,
        role=Role(model.role),
        department_id=model.department_id,
        reports_to_id=model.reports_to_id,
        is_active=model.is_active,
        created_at=model.created_at,
        updated_at=model.updated_at or model.created_at,
    )


def _model_to_department(model: DepartmentModel) -> Department:
    return Department(id=model.id, name=model.name, created_at=model.created_at)


class DirectoryRepository:
    """Users and departments.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Users ────────────────────────────────────────────────────────────

    async def get_user(self, user_id: uuid.UUID) -> User | None:
        async for session in self._session_factory():
            model = await session.get(UserModel, user_id)
            return _model_to_user(model) if model else None

    async def get_user_by_email(self, email: str) -> User | None:
        async for session in self._session_factory():
            stmt = select(UserModel).where(UserModel.email == email.lower())
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _model_to_user(model) if model else None

    async def get_users(self, user_ids: list[uuid.UUID]) -> dict[uuid.UUID, User]:
        """Batch load users keyed by id (missing ids are simply absent)."""
        if not user_ids:
            return {}
        async for session in self._session_factory():
            stmt = select(UserModel).where(UserModel.id.in_(set(user_ids)))
            result = await session.execute(stmt)
            return {m.id: _model_to_user(m) for m in result.scalars().all()}

    async def list_users(
        self,
        reports_to_id: uuid.UUID | None = None,
        active_only: bool = False,
    ) -> list[User]:
        async for session in self._session_factory():
            stmt = select(UserModel).order_by(UserModel.name)
            if reports_to_id is not None:
                stmt = stmt.where(UserModel.reports_to_id == reports_to_id)
            if active_only:
                stmt = stmt.where(UserModel.is_active == True)  # noqa: E712
            result = await session.execute(stmt)
            return [_model_to_user(m) for m in result.scalars().all()]

    async def create_user(self, data: UserCreate) -> User:
        async for session in self._session_factory():
            model = UserModel(
                email=data.email.lower(),
                name=data.name,
                role=data.role.value,
                department_id=data.department_id,
                reports_to_id=data.reports_to_id,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_user(model)

    async def update_user(self, user_id: uuid.UUID, data: UserUpdate) -> User:
        """Apply the fields set on data.

        Raises:
            ValueError: If the user does not exist.
        """
        async for session in self._session_factory():
            model = await session.get(UserModel, user_id)
            if model is None:
                raise ValueError(f"User not found: {user_id}")

            for field, value in data.model_dump(exclude_unset=True).items():
                if isinstance(value, Role):
                    value = value.value
                setattr(model, field, value)
            model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_user(model)

    # ── Departments ──────────────────────────────────────────────────────

    async def list_departments(self) -> list[Department]:
        async for session in self._session_factory():
            result = await session.execute(
                select(DepartmentModel).order_by(DepartmentModel.name)
            )
            return [_model_to_department(m) for m in result.scalars().all()]

    async def get_department_by_name(self, name: str) -> Department | None:
        async for session in self._session_factory():
            stmt = select(DepartmentModel).where(DepartmentModel.name == name)
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _model_to_department(model) if model else None

    async def create_department(self, data: DepartmentCreate) -> Department:
        async for session in self._session_factory():
            model = DepartmentModel(name=data.name)
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_department(model)
