import uuid

from sqlalchemy import Column, Text, Integer, TIMESTAMP, ForeignKey, Index, Uuid, func, text
from sqlalchemy.orm import relationship

from .base import Base


class VolunteerAssignment(Base):
    """
    Link between a volunteer and an event.

    At most one non-cancelled assignment exists per (volunteer, event),
    enforced by a partial unique index; a cancelled one is reactivated
    instead of inserting a second row.
    """
    __tablename__ = 'volunteer_assignment'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    volunteer_id = Column(Uuid, ForeignKey('volunteer.id', ondelete='CASCADE'), nullable=False)
    event_id = Column(Uuid, ForeignKey('event.id', ondelete='CASCADE'), nullable=False)

    status = Column(Text, nullable=False, default='pending')
    match_score = Column(Integer)
    notes = Column(Text)
    assigned_by = Column(Text)

    assigned_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    confirmed_at = Column(TIMESTAMP(timezone=True))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    volunteer = relationship("Volunteer", back_populates="assignments")
    event = relationship("Event", back_populates="assignments")

    __table_args__ = (
        Index('idx_assignment_event_status', 'event_id', 'status'),
        Index(
            'uq_assignment_active_pair', 'volunteer_id', 'event_id',
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )
