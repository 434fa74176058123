"""
Modelos SQLAlchemy - Captura, chunks y conversión.

Las tablas `outcomes` y `actions` pertenecen al subsistema de outcomes;
aquí se declaran para que la conversión pueda escribir en ellas.
"""

import uuid
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planner.db.database import Base


def utcnow() -> datetime:
    """Hora UTC sin tzinfo, como se guarda en las columnas DateTime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================
# INBOX
# ============================================================


class InboxItemModel(Base):
    """Nota capturada."""

    __tablename__ = "inbox_items"
    __table_args__ = (
        CheckConstraint(
            "NOT triaged OR triaged_to_id IS NOT NULL",
            name="ck_inbox_items_triaged_target",
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    item_type: Mapped[str] = mapped_column(String(20), default="NOTE", nullable=False)

    # Back-reference desnormalizada de chunk_items
    chunk_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("chunks.id", ondelete="SET NULL"), index=True
    )

    # Triage (monótono)
    triaged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    triaged_to_id: Mapped[UUID | None] = mapped_column(Uuid)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


# ============================================================
# CHUNKS
# ============================================================


class ChunkModel(Base):
    """Agrupación de items."""

    __tablename__ = "chunks"
    __table_args__ = (
        CheckConstraint(
            "(converted_to_id IS NULL AND converted_at IS NULL AND converted_to_type IS NULL)"
            " OR (converted_to_id IS NOT NULL AND converted_at IS NOT NULL"
            " AND converted_to_type IS NOT NULL)",
            name="ck_chunks_conversion_triple",
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    color: Mapped[str] = mapped_column(String(20), default="#6366F1", nullable=False)

    status: Mapped[str] = mapped_column(String(20), default="ACTIVE", nullable=False)

    # Conversión (se asignan juntos)
    converted_to_type: Mapped[str | None] = mapped_column(String(20))
    converted_to_id: Mapped[UUID | None] = mapped_column(Uuid)
    converted_at: Mapped[datetime | None] = mapped_column(DateTime)

    # Marcador de conversión en curso (CAS)
    conversion_token: Mapped[str | None] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class ChunkItemModel(Base):
    """Membresía ordenada de un item en un chunk."""

    __tablename__ = "chunk_items"
    __table_args__ = (
        UniqueConstraint("inbox_item_id", name="uq_chunk_items_inbox_item"),
        UniqueConstraint("chunk_id", "sort_order", name="uq_chunk_items_sort_order"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    chunk_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("chunks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    inbox_item_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("inbox_items.id", ondelete="CASCADE"), nullable=False
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Relationships
    inbox_item: Mapped["InboxItemModel"] = relationship(lazy="joined")


class ChunkConversionModel(Base):
    """Cursor persistido de la saga de conversión."""

    __tablename__ = "chunk_conversions"

    token: Mapped[str] = mapped_column(String(64), primary_key=True)
    chunk_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("chunks.id"), nullable=False, unique=True
    )

    step: Mapped[str] = mapped_column(String(30), default="PENDING", nullable=False)
    request: Mapped[dict] = mapped_column(JSON, nullable=False)

    outcome_id: Mapped[UUID | None] = mapped_column(Uuid)
    actions_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text)

    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)


# ============================================================
# PREFERENCES
# ============================================================


class UserPreferenceModel(Base):
    """Defaults de conversión recordados por usuario."""

    __tablename__ = "user_preferences"

    user_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)

    auto_create_actions_from_chunks: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    default_post_conversion_action: Mapped[str] = mapped_column(
        String(20), default="STAY", nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


# ============================================================
# OUTCOMES (subsistema externo)
# ============================================================


class OutcomeModel(Base):
    """Outcome."""

    __tablename__ = "outcomes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)

    area_id: Mapped[UUID | None] = mapped_column(Uuid)
    goal_id: Mapped[UUID | None] = mapped_column(Uuid)

    status: Mapped[str] = mapped_column(String(20), default="ACTIVE", nullable=False)

    # Un chunk produce como máximo un outcome
    source_chunk_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("chunks.id", ondelete="SET NULL"), unique=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class ActionModel(Base):
    """Acción de un outcome."""

    __tablename__ = "actions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    outcome_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("outcomes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[UUID | None] = mapped_column(Uuid)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    done: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=2, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    is_must: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    source_chunk_item_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("chunk_items.id", ondelete="SET NULL")
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
