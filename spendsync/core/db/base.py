from datetime import datetime
from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from typing import Optional
import uuid


class Base(DeclarativeBase):
    """Base class for all database models"""

    pass


def new_uuid() -> str:
    return str(uuid.uuid4())


class BaseModel(Base):
    """
    Abstract base model that provides common fields for all entities.
    Ids are UUID strings so extractors can derive them deterministically.
    """

    __abstract__ = True

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )
