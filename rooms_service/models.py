import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Integer, String, Text

from .database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Room(Base):
    """
    SQLAlchemy model representing a hotel room.

    Attributes
    ----------
    id : str
        Opaque identifier (hex UUID) assigned on creation.
    seq : int
        Monotonic insertion counter, used to order rooms created within
        the same timestamp tick.
    room_number : str
        Human-readable, unique room number (e.g. '101').
    type : str
        One of single, double, suite, deluxe.
    price : float
        Per-night rate, never negative.
    status : str
        One of available, occupied, maintenance.
    description : str
        Optional free-text notes.
    created_at : datetime
        Timestamp recording when the room was created.
    updated_at : datetime
        Timestamp of the last write.
    """
    __tablename__ = "rooms"

    id = Column(String(32), primary_key=True, default=_new_id)
    seq = Column(Integer, nullable=False, default=0)
    room_number = Column(String(50), unique=True, nullable=False, index=True)
    type = Column(String(20), nullable=False, index=True)
    price = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default="available", index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
