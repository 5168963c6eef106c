# apps/api/visitor/models.py

import sqlalchemy as sa
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from core.db.base import AbstractSQLModel
from core.db.mixins import TimestampsMixin
from apps.api.visitor.schema import VisitorStatus


class VisitorRequest(AbstractSQLModel, TimestampsMixin):
    """
    One visitor's entry request. Status only moves forward along the
    state machine in apps.api.visitor.state.
    """

    __tablename__ = "visitor_requests"

    residency_id = Column(
        String(64),
        ForeignKey("residencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    flat_id = Column(
        String(64),
        ForeignKey("flats.id"),
        nullable=False,
        index=True,
    )

    visitor_name = Column(String(120), nullable=False)
    visitor_phone = Column(String(30), nullable=True)
    purpose = Column(String(255), nullable=True)
    vehicle_number = Column(String(30), nullable=True)

    status = Column(
        String(20),
        default=VisitorStatus.PENDING.value,
        server_default=VisitorStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    # Minted once at creation, never rotated
    approval_token = Column(String(64), nullable=False)
    notification_sent = Column(
        Boolean, default=False, server_default=sa.false(), nullable=False
    )

    action_by = Column(String(100), nullable=True)
    approved_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(String(100), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    entered_at = Column(DateTime(timezone=True), nullable=True)
    exited_at = Column(DateTime(timezone=True), nullable=True)

    flat = relationship("Flat")

    @property
    def has_approval_data(self) -> bool:
        return bool(self.approved_by or self.rejected_by)
