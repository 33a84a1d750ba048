from __future__ import annotations

from datetime import datetime
from typing import Optional

from complaints_core.domain_enums import ComplaintStatus
from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

complaint_status_enum = SQLAlchemyEnum(
    ComplaintStatus,
    name="complaint_status_enum",
    values_callable=lambda obj: [e.value for e in obj],
)


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class PublicEntity(Base):
    __tablename__ = "public_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    complaints: Mapped[list["Complaint"]] = relationship(back_populates="entity")


class Complaint(Base):
    __tablename__ = "complaints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[int] = mapped_column(
        ForeignKey("public_entities.id"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[ComplaintStatus] = mapped_column(
        complaint_status_enum, nullable=False, default=ComplaintStatus.OPEN
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    entity: Mapped["PublicEntity"] = relationship(back_populates="complaints")
    comments: Mapped[list["AnonymousComment"]] = relationship(back_populates="complaint")

    __table_args__ = (Index("ix_complaints_active_created_at", "active", "created_at"),)


class AnonymousComment(Base):
    """Comment on a complaint. Deliberately stores no author information."""

    __tablename__ = "anonymous_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    complaint_id: Mapped[int] = mapped_column(
        ForeignKey("complaints.id"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    complaint: Mapped["Complaint"] = relationship(back_populates="comments")


class ComplaintStatusHistory(Base):
    """Projection of status change events consumed from Kafka."""

    __tablename__ = "complaint_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    complaint_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    previous_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    new_status: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    changed_by: Mapped[str] = mapped_column(String(255), nullable=False)
    change_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    event_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
