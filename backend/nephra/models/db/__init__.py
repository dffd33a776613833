"""SQLAlchemy 2.0 ORM models for Nephra.

Import all models here so Alembic and ``Base.metadata.create_all`` can
discover them via::

    from nephra.models.db import Base  # noqa: F401
"""

from nephra.models.db.base import Base, IdMixin, TimestampMixin  # noqa: F401
from nephra.models.db.project import Project  # noqa: F401
from nephra.models.db.project_request import (  # noqa: F401
    ExistingProjectRequest,
    ProjectRequest,
)
from nephra.models.db.review_event import AuditLog, Notification  # noqa: F401
