import uuid

from sqlalchemy import (
    Column, Text, Boolean, Integer, Float, Date, Time, TIMESTAMP, ForeignKey,
    UniqueConstraint, Index, Uuid, func
)
from sqlalchemy.orm import relationship

from .base import Base


class Skill(Base):
    """Catalogue of skills volunteers can hold and events can require."""
    __tablename__ = 'skill'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False, unique=True)
    category = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())


class Volunteer(Base):
    """
    A person who can be matched to events.

    reliability_score is derived from history and refreshed on demand;
    volunteers are deactivated, never hard-deleted while history exists.
    """
    __tablename__ = 'volunteer'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)

    latitude = Column(Float)
    longitude = Column(Float)
    address = Column(Text)

    reliability_score = Column(Integer, nullable=False, default=75)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    skills = relationship("VolunteerSkill", back_populates="volunteer", cascade="all, delete-orphan")
    availability = relationship("VolunteerAvailability", back_populates="volunteer", cascade="all, delete-orphan")
    assignments = relationship("VolunteerAssignment", back_populates="volunteer")
    history = relationship("VolunteerHistory", back_populates="volunteer")


class VolunteerSkill(Base):
    __tablename__ = 'volunteer_skill'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    volunteer_id = Column(Uuid, ForeignKey('volunteer.id', ondelete='CASCADE'), nullable=False)
    skill_id = Column(Uuid, ForeignKey('skill.id', ondelete='CASCADE'), nullable=False)
    proficiency = Column(Text, nullable=False, default='beginner')
    years_experience = Column(Integer)

    volunteer = relationship("Volunteer", back_populates="skills")
    skill = relationship("Skill")

    __table_args__ = (
        UniqueConstraint('volunteer_id', 'skill_id', name='uq_volunteer_skill'),
    )


class VolunteerAvailability(Base):
    """
    A time range a volunteer can work.

    Recurring slots set day_of_week; one-off slots set specific_date.
    """
    __tablename__ = 'volunteer_availability'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    volunteer_id = Column(Uuid, ForeignKey('volunteer.id', ondelete='CASCADE'), nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=True)
    day_of_week = Column(Text)
    specific_date = Column(Date)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    volunteer = relationship("Volunteer", back_populates="availability")

    __table_args__ = (
        Index('idx_availability_volunteer', 'volunteer_id'),
    )
