"""Application store backed by SQLAlchemy async ORM sessions."""

import logging
import uuid as _uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union

from sqlalchemy import DateTime, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nephra.models.application_models import ApplicationOrigin
from nephra.models.db.project import Project
from nephra.models.db.project_request import ExistingProjectRequest, ProjectRequest
from nephra.review.errors import ApplicationNotFound, ReviewConflict, StoreFailure
from nephra.stores.base import same_instant

logger = logging.getLogger(__name__)

_MODELS = {
    ApplicationOrigin.NEW_PROPOSAL: ProjectRequest,
    ApplicationOrigin.EXISTING_PROJECT_REQUEST: ExistingProjectRequest,
}


def _row_to_dict(obj) -> dict:
    """ORM row -> dict (safe JSON-serialisable conversion)."""
    result = {}
    for col in obj.__table__.columns:
        value = getattr(obj, col.key, None)
        if isinstance(value, _uuid.UUID):
            result[col.name] = str(value)
        elif isinstance(value, (datetime, date)):
            result[col.name] = value.isoformat()
        elif isinstance(value, Decimal):
            result[col.name] = float(value)
        else:
            result[col.name] = value
    return result


def _with_project(obj, project_id, project_title) -> dict:
    row = _row_to_dict(obj)
    row["projects"] = (
        {"id": str(project_id), "title": project_title} if project_id is not None else None
    )
    return row


def _coerce_values(model, fields: dict[str, Any]) -> dict[str, Any]:
    """Map payload keys onto columns, parsing ISO strings for timestamp columns."""
    columns = model.__table__.columns
    values: dict[str, Any] = {}
    for name, value in fields.items():
        if name not in columns:
            raise StoreFailure(
                f"update {model.__tablename__}", f"unknown column '{name}'"
            )
        column = columns[name]
        if isinstance(column.type, DateTime) and isinstance(value, str):
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        values[column.key] = value
    return values


class SqlAlchemyApplicationStore:
    """Reads and writes the request tables through ORM models."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _joined(self, model):
        return select(model, Project.id, Project.title).outerjoin(
            Project, Project.id == model.project_id
        )

    async def fetch_by_id(self, origin: ApplicationOrigin, application_id: str) -> Optional[dict]:
        model = _MODELS[origin]
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    self._joined(model).where(model.id == application_id)
                )
                row = result.one_or_none()
        except SQLAlchemyError as e:
            logger.error("Fetch from %s failed: %s", origin.value, e)
            raise StoreFailure(f"fetch {origin.value}", str(e)) from e
        if row is None:
            return None
        return _with_project(*row)

    async def update_fields(
        self,
        origin: ApplicationOrigin,
        application_id: str,
        fields: dict[str, Any],
        expected_updated_at: Optional[Union[str, datetime]] = None,
    ) -> dict:
        model = _MODELS[origin]
        values = _coerce_values(model, fields)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    obj = await session.get(model, application_id, with_for_update=True)
                    if obj is None:
                        raise ApplicationNotFound(application_id, origin.value)
                    if expected_updated_at is not None and not same_instant(
                        obj.updated_at, expected_updated_at
                    ):
                        raise ReviewConflict(application_id)
                    for key, value in values.items():
                        setattr(obj, key, value)
                    await session.flush()
                    return _row_to_dict(obj)
        except SQLAlchemyError as e:
            logger.error("Update of %s %s failed: %s", origin.value, application_id, e)
            raise StoreFailure(f"update {origin.value}", str(e)) from e

    async def delete_by_id(self, origin: ApplicationOrigin, application_id: str) -> bool:
        model = _MODELS[origin]
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(model).where(model.id == application_id)
                    )
                    deleted = result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error("Delete from %s failed: %s", origin.value, e)
            raise StoreFailure(f"delete {origin.value}", str(e)) from e
        return deleted > 0

    async def list_all(self, origin: ApplicationOrigin) -> list[dict]:
        model = _MODELS[origin]
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    self._joined(model).order_by(model.created_at.desc())
                )
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Listing %s failed: %s", origin.value, e)
            raise StoreFailure(f"list {origin.value}", str(e)) from e
        return [_with_project(*row) for row in rows]

    async def list_projects(self) -> list[dict]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(Project.id, Project.title))
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Listing projects failed: %s", e)
            raise StoreFailure("list projects", str(e)) from e
        return [{"id": str(pid), "title": title} for pid, title in rows]
