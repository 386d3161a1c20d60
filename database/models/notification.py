import uuid

from sqlalchemy import Column, Text, Boolean, TIMESTAMP, ForeignKey, Index, Uuid, JSON, func

from .base import Base


class Notification(Base):
    """
    In-app notification written by the in_app channel.
    """
    __tablename__ = 'notification'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_id = Column(Uuid, ForeignKey('volunteer.id', ondelete='CASCADE'), nullable=False)
    type = Column(Text, nullable=False)
    priority = Column(Text, nullable=False, default='normal')
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    related_event_id = Column(Uuid, ForeignKey('event.id', ondelete='SET NULL'), nullable=True)
    payload = Column(JSON, default=dict)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index('idx_notification_recipient', 'recipient_id', 'created_at'),
    )
