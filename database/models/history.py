import uuid

from sqlalchemy import (
    Column, Text, Integer, Numeric, TIMESTAMP, ForeignKey, JSON,
    UniqueConstraint, Index, Uuid, func
)
from sqlalchemy.orm import relationship

from .base import Base


class VolunteerHistory(Base):
    """
    Attendance record for one volunteer at one event.

    The (volunteer_id, event_id) unique constraint is the backstop for
    concurrent check-ins: a losing insert raises IntegrityError and the
    caller re-reads the winning row.
    """
    __tablename__ = 'volunteer_history'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    volunteer_id = Column(Uuid, ForeignKey('volunteer.id', ondelete='RESTRICT'), nullable=False)
    event_id = Column(Uuid, ForeignKey('event.id', ondelete='RESTRICT'), nullable=False)
    assignment_id = Column(Uuid, ForeignKey('volunteer_assignment.id', ondelete='SET NULL'), nullable=True)

    status = Column(Text, nullable=False, default='registered')
    attendance = Column(Text, nullable=False, default='pending')

    participation_date = Column(TIMESTAMP(timezone=True), nullable=False)
    completion_date = Column(TIMESTAMP(timezone=True))
    hours_worked = Column(Numeric(5, 2, asdecimal=False), nullable=False, default=0)

    performance_rating = Column(Integer)
    feedback = Column(Text)
    admin_notes = Column(Text)
    skills_utilized = Column(JSON, default=list)
    recorded_by = Column(Text)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    volunteer = relationship("Volunteer", back_populates="history")
    event = relationship("Event")

    __table_args__ = (
        UniqueConstraint('volunteer_id', 'event_id', name='uq_history_volunteer_event'),
        Index('idx_history_volunteer_date', 'volunteer_id', 'participation_date'),
    )
