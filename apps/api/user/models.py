import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from core.db.base import AbstractSQLModel
from core.db.mixins import TimestampsMixin


class PrincipalMixin:
    """Columns shared by every principal that can own device tokens."""

    username = Column(String(100), nullable=False)
    display_name = Column(String(120), nullable=True)
    phone = Column(String(30), nullable=True)
    active = Column(Boolean, default=True, server_default=sa.true(), nullable=False)

    # Legacy single-device field, folded into fcm_tokens on write
    fcm_token = Column(String(512), nullable=True)
    fcm_tokens = Column(JSON, nullable=True, default=list)
    fcm_updated_at = Column(DateTime(timezone=True), nullable=True)


class Resident(AbstractSQLModel, PrincipalMixin, TimestampsMixin):
    __tablename__ = "residents"
    __table_args__ = (
        UniqueConstraint("residency_id", "username", name="uq_resident_username"),
    )

    residency_id = Column(
        String(64),
        ForeignKey("residencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    flat_id = Column(
        String(64),
        ForeignKey("flats.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # Free-text pair kept by bulk-imported residents that have no flat_id
    block = Column(String(100), nullable=True)
    flat = Column(String(20), nullable=True, index=True)

    flat_ref = relationship("Flat", foreign_keys=[flat_id])


class Guard(AbstractSQLModel, PrincipalMixin, TimestampsMixin):
    __tablename__ = "guards"
    __table_args__ = (
        UniqueConstraint("residency_id", "username", name="uq_guard_username"),
    )

    residency_id = Column(
        String(64),
        ForeignKey("residencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
