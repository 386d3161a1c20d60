import uuid

from sqlalchemy import (
    Column, Text, Integer, Float, TIMESTAMP, ForeignKey, Boolean,
    UniqueConstraint, Index, Uuid, func
)
from sqlalchemy.orm import relationship

from .base import Base


class Event(Base):
    """
    A scheduled event volunteers are assigned to.

    current_volunteers always equals the number of confirmed assignments.
    """
    __tablename__ = 'event'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    description = Column(Text)
    category = Column(Text)

    status = Column(Text, nullable=False, default='draft')
    urgency = Column(Text, nullable=False, default='normal')

    start_date = Column(TIMESTAMP(timezone=True), nullable=False)
    end_date = Column(TIMESTAMP(timezone=True), nullable=False)

    latitude = Column(Float)
    longitude = Column(Float)
    address = Column(Text)

    max_volunteers = Column(Integer, nullable=False, default=1)
    current_volunteers = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    required_skills = relationship("EventRequiredSkill", back_populates="event", cascade="all, delete-orphan")
    assignments = relationship("VolunteerAssignment", back_populates="event")

    __table_args__ = (
        Index('idx_event_status_start', 'status', 'start_date'),
    )


class EventRequiredSkill(Base):
    __tablename__ = 'event_required_skill'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid, ForeignKey('event.id', ondelete='CASCADE'), nullable=False)
    skill_id = Column(Uuid, ForeignKey('skill.id', ondelete='CASCADE'), nullable=False)
    min_proficiency = Column(Text, nullable=False, default='beginner')
    is_required = Column(Boolean, nullable=False, default=True)

    event = relationship("Event", back_populates="required_skills")
    skill = relationship("Skill")

    __table_args__ = (
        UniqueConstraint('event_id', 'skill_id', name='uq_event_required_skill'),
    )
