from dataclasses import asdict, dataclass
from typing import Dict, Optional
from urllib.parse import parse_qsl, urlencode

from rooms_service.schemas import ALL, RoomCreate, RoomRead, RoomStatus, RoomType, RoomUpdate

REQUIRED_FIELDS_MESSAGE = "Please fill in all required fields"

FILTER_KEYS = ("search", "type", "status")

TYPE_CHOICES = [(t.value, t.value.capitalize()) for t in RoomType]
STATUS_CHOICES = [(s.value, s.value.capitalize()) for s in RoomStatus]


def parse_price(raw: Optional[str]) -> float:
    """Parse a price the way a number input does; garbage reads as 0."""
    try:
        return float(raw) if raw not in (None, "") else 0.0
    except ValueError:
        return 0.0


@dataclass
class RoomForm:
    """
    State of the create/edit modal.

    Holds the raw submitted strings so a rejected form can be shown again
    exactly as the user typed it.
    """
    room_number: str = ""
    type: str = RoomType.SINGLE.value
    price: str = "0"
    status: str = RoomStatus.AVAILABLE.value
    description: str = ""

    @classmethod
    def blank(cls) -> "RoomForm":
        return cls()

    @classmethod
    def from_room(cls, room: RoomRead) -> "RoomForm":
        return cls(
            room_number=room.room_number,
            type=room.type.value,
            price=f"{room.price:g}",
            status=room.status.value,
            description=room.description or "",
        )

    @classmethod
    def from_submission(cls, data: Dict[str, str]) -> "RoomForm":
        return cls(
            room_number=data.get("roomNumber", ""),
            type=data.get("type", ""),
            price=data.get("price", ""),
            status=data.get("status", ""),
            description=data.get("description", ""),
        )

    def validate(self) -> Optional[str]:
        """Return an error message when the form must not be sent."""
        if not self.room_number.strip() or not self.type or parse_price(self.price) <= 0:
            return REQUIRED_FIELDS_MESSAGE
        return None

    def _fields(self) -> Dict[str, object]:
        return {
            "room_number": self.room_number,
            "type": self.type,
            "price": parse_price(self.price),
            "status": self.status,
            "description": self.description,
        }

    def to_create(self) -> RoomCreate:
        return RoomCreate(**self._fields())

    def to_update(self) -> RoomUpdate:
        # The modal always carries every editable field.
        return RoomUpdate(**self._fields())

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class ListFilters:
    """Search text and the two enum filters of the list view."""
    search: str = ""
    type: str = ALL
    status: str = ALL

    @classmethod
    def from_mapping(cls, data) -> "ListFilters":
        return cls(
            search=(data.get("search") or "").strip(),
            type=data.get("type") or ALL,
            status=data.get("status") or ALL,
        )

    @classmethod
    def from_query_string(cls, raw: Optional[str]) -> "ListFilters":
        pairs = dict(parse_qsl(raw or ""))
        return cls.from_mapping({k: v for k, v in pairs.items() if k in FILTER_KEYS})

    def query_string(self) -> str:
        params = {}
        if self.search:
            params["search"] = self.search
        if self.type != ALL:
            params["type"] = self.type
        if self.status != ALL:
            params["status"] = self.status
        return urlencode(params)

    def cache_key(self) -> str:
        return f"rooms:list:{self.search.lower()}|{self.type}|{self.status}"
