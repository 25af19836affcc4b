import logging
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import ConflictError, NotFoundError, RoomValidationError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("room_number", "type", "price", "status")

# SQLSTATE for unique_violation.
UNIQUE_VIOLATION = "23505"


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _is_room_number_clash(exc: IntegrityError) -> bool:
    """
    True when ``exc`` is the unique index on ``room_number`` firing.

    SQLite reports ``UNIQUE constraint failed: rooms.room_number``;
    PostgreSQL raises SQLSTATE 23505 naming ``ix_rooms_room_number``.
    Any other integrity failure is not a conflict.
    """
    message = str(exc.orig).lower()
    if "room_number" not in message:
        return False
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode is not None:
        return pgcode == UNIQUE_VIOLATION
    return "unique" in message


class RoomRepository:
    """
    Persistence access for rooms.

    Enforces the room-number uniqueness rule with an explicit lookup
    before every write that sets a room number. The lookup and the write
    are not atomic: two concurrent writers can both pass the check, in
    which case the unique index on ``room_number`` rejects the second
    commit and that failure is reported as the same ``ConflictError``.

    Parameters
    ----------
    db : Session
        Session owned by the caller; the repository commits on writes.
    """

    def __init__(self, db: Session):
        self.db = db

    # ---------- Reads ----------

    def list_rooms(self, room_filter: Optional[schemas.RoomFilter] = None) -> List[models.Room]:
        """
        Return every room matching ``room_filter``, most recent first.

        ``search`` is a case-insensitive substring matched against the
        room number OR the description. ``type`` and ``status`` restrict
        the result only when set; ``"all"`` is normalised to unset by
        :class:`~rooms_service.schemas.RoomFilter`.
        """
        room_filter = room_filter or schemas.RoomFilter()
        query = self.db.query(models.Room)

        if room_filter.search:
            pattern = f"%{_escape_like(room_filter.search.lower())}%"
            query = query.filter(
                or_(
                    func.lower(models.Room.room_number).like(pattern, escape="\\"),
                    func.lower(models.Room.description).like(pattern, escape="\\"),
                )
            )

        if room_filter.type is not None:
            query = query.filter(models.Room.type == room_filter.type.value)

        if room_filter.status is not None:
            query = query.filter(models.Room.status == room_filter.status.value)

        return query.order_by(models.Room.created_at.desc(), models.Room.seq.desc()).all()

    def get_room_by_id(self, room_id: str) -> models.Room:
        room = self.db.get(models.Room, room_id)
        if room is None:
            raise NotFoundError()
        return room

    def find_by_room_number(self, room_number: str) -> Optional[models.Room]:
        return (
            self.db.query(models.Room)
            .filter(models.Room.room_number == room_number)
            .first()
        )

    # ---------- Writes ----------

    def create_room(self, fields: schemas.RoomCreate) -> models.Room:
        """
        Persist a new room.

        Raises
        ------
        RoomValidationError
            If room number, type or price is missing.
        ConflictError
            If another room already uses the room number.
        """
        if fields.status is None:
            fields = fields.model_copy(update={"status": schemas.RoomStatus.AVAILABLE})

        missing = fields.missing(*REQUIRED_FIELDS)
        if missing:
            raise RoomValidationError(
                "Please provide all required fields",
                error=f"Missing: {', '.join(missing)}",
            )

        if self.find_by_room_number(fields.room_number) is not None:
            logger.warning(f"Rejected duplicate room number {fields.room_number!r}")
            raise ConflictError()

        room = models.Room(
            seq=self._next_seq(),
            room_number=fields.room_number,
            type=fields.type.value,
            price=fields.price,
            status=fields.status.value,
            description=fields.description,
        )
        self.db.add(room)
        self._commit()
        self.db.refresh(room)
        logger.info(f"Created room {room.id} ({room.room_number})")
        return room

    def update_room(self, room_id: str, fields: schemas.RoomUpdate) -> models.Room:
        """
        Apply the fields present in ``fields`` to an existing room.

        Fields that were not sent are left unchanged. The room number is
        re-checked for uniqueness only when it actually changes.

        Raises
        ------
        NotFoundError
            If no room has ``room_id``.
        RoomValidationError
            If a required field is sent empty.
        ConflictError
            If the new room number belongs to another room.
        """
        room = self.get_room_by_id(room_id)
        update_data = fields.model_dump(exclude_unset=True)

        cleared = [
            name for name in REQUIRED_FIELDS
            if name in update_data and update_data[name] is None
        ]
        if cleared:
            aliases = [schemas.RoomUpdate.model_fields[name].alias for name in cleared]
            raise RoomValidationError(
                "Please provide all required fields",
                error=f"Empty: {', '.join(aliases)}",
            )

        new_number = update_data.get("room_number")
        if new_number is not None and new_number != room.room_number:
            existing = self.find_by_room_number(new_number)
            if existing is not None and existing.id != room.id:
                logger.warning(f"Rejected renaming room {room.id} to duplicate {new_number!r}")
                raise ConflictError()

        for key, value in update_data.items():
            if isinstance(value, (schemas.RoomType, schemas.RoomStatus)):
                value = value.value
            setattr(room, key, value)

        self._commit()
        self.db.refresh(room)
        logger.info(f"Updated room {room.id} fields {sorted(update_data)}")
        return room

    def delete_room(self, room_id: str) -> None:
        room = self.get_room_by_id(room_id)
        self.db.delete(room)
        self.db.commit()
        logger.info(f"Deleted room {room_id}")

    # ---------- Helpers ----------

    def _next_seq(self) -> int:
        current = self.db.query(func.max(models.Room.seq)).scalar()
        return (current or 0) + 1

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if not _is_room_number_clash(exc):
                raise
            logger.warning(f"Unique index rejected room write: {exc.orig}")
            raise ConflictError(error=str(exc.orig)) from exc
