# apps/api/residency/models.py

from sqlalchemy import JSON, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from core.db.base import AbstractSQLModel
from core.db.mixins import TimestampsMixin
from apps.api.residency.schema import ServiceStatus


class Residency(AbstractSQLModel, TimestampsMixin):
    """
    Tenant boundary: one residential society. Every other row belongs to
    exactly one residency.
    """

    __tablename__ = "residencies"

    name = Column(String(200), nullable=False, index=True)
    service_status = Column(
        String(5),
        default=ServiceStatus.ON.value,
        server_default=ServiceStatus.ON.value,
        nullable=False,
    )
    # Legacy single-device field, folded into admin_fcm_tokens on write
    admin_fcm_token = Column(String(512), nullable=True)
    admin_fcm_tokens = Column(JSON, nullable=True, default=list)

    blocks = relationship(
        "Block", back_populates="residency", cascade="all, delete-orphan"
    )
    flats = relationship(
        "Flat", back_populates="residency", cascade="all, delete-orphan"
    )
    residents = relationship("Resident", cascade="all, delete-orphan")
    guards = relationship("Guard", cascade="all, delete-orphan")
    visitor_requests = relationship("VisitorRequest", cascade="all, delete-orphan")


class Block(AbstractSQLModel, TimestampsMixin):
    __tablename__ = "blocks"

    residency_id = Column(
        String(64),
        ForeignKey("residencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(100), nullable=False)

    residency = relationship("Residency", back_populates="blocks")
    flats = relationship("Flat", back_populates="block")


class Flat(AbstractSQLModel, TimestampsMixin):
    __tablename__ = "flats"

    residency_id = Column(
        String(64),
        ForeignKey("residencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    block_id = Column(
        String(64),
        ForeignKey("blocks.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    number = Column(String(20), nullable=False)
    floor = Column(Integer, nullable=True)

    residency = relationship("Residency", back_populates="flats")
    block = relationship("Block", back_populates="flats")
