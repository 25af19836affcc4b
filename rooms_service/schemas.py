from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ALL = "all"


class RoomType(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    SUITE = "suite"
    DELUXE = "deluxe"


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"


def _blank_as_none(value):
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    return value


class CamelModel(BaseModel):
    """
    Base schema whose fields travel as camelCase on the wire.

    Python code uses the snake_case attribute names; either form is
    accepted on input.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoomFields(CamelModel):
    """
    Writable room fields shared by the create and update payloads.

    Every field is optional at this level so that handlers can report
    missing values with their own message. Blank strings count as missing,
    and text fields are trimmed.
    """
    room_number: Optional[str] = None
    type: Optional[RoomType] = None
    price: Optional[float] = Field(default=None, ge=0)
    status: Optional[RoomStatus] = None
    description: Optional[str] = None

    @field_validator("room_number", mode="before")
    @classmethod
    def room_number_as_text(cls, value):
        # JSON clients often send 101 rather than "101".
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(int(value)) if float(value).is_integer() else str(value)
        return _blank_as_none(value)

    @field_validator("type", "price", "status", mode="before")
    @classmethod
    def blank_is_missing(cls, value):
        return _blank_as_none(value)

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    def missing(self, *names: str) -> List[str]:
        """Return the wire names of ``names`` that have no value."""
        return [
            type(self).model_fields[name].alias or name
            for name in names
            if getattr(self, name) is None
        ]


class RoomCreate(RoomFields):
    """
    Schema for creating a new room.

    ``status`` falls back to ``available`` when the repository is called
    without one.
    """
    pass


class RoomUpdate(RoomFields):
    """
    Schema for partial updates to a room.

    Only fields present in the request body are applied.
    """
    pass


class RoomRead(CamelModel):
    """
    Schema returned when reading room data.
    """
    id: str
    room_number: str
    type: RoomType
    price: float
    status: RoomStatus
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RoomFilter(BaseModel):
    """
    Filters accepted by the room listing.

    ``type`` and ``status`` equal to ``"all"`` (or blank) disable that
    dimension; a blank ``search`` matches everything.
    """
    search: Optional[str] = None
    type: Optional[RoomType] = None
    status: Optional[RoomStatus] = None

    @field_validator("search", mode="before")
    @classmethod
    def blank_search(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("type", "status", mode="before")
    @classmethod
    def all_is_unrestricted(cls, value):
        if isinstance(value, str) and value.strip().lower() in ("", ALL):
            return None
        return value


# ---------- Response envelopes ----------


class MessageEnvelope(CamelModel):
    success: bool = True
    message: str


class RoomEnvelope(CamelModel):
    success: bool = True
    data: RoomRead


class RoomMessageEnvelope(CamelModel):
    success: bool = True
    message: str
    data: RoomRead


class RoomListEnvelope(CamelModel):
    success: bool = True
    count: int
    data: List[RoomRead]


class ErrorEnvelope(CamelModel):
    success: bool = False
    message: str
    error: Optional[str] = None
