import logging
import time
from contextlib import asynccontextmanager, contextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from common.logging_setup import configure_logging

from . import schemas
from .config import Settings
from .database import build_context, get_db
from .errors import (
    RoomServiceError,
    RoomValidationError,
    UnexpectedError,
    describe_validation_errors,
)
from .repository import RoomRepository

logger = logging.getLogger(__name__)

SERVICE_NAME = "rooms"

CREATE_REQUIRED = ("room_number", "type", "price", "status")

router = APIRouter(prefix="/rooms", tags=["Rooms"])


def get_repository(db: Session = Depends(get_db)) -> RoomRepository:
    return RoomRepository(db)


@contextmanager
def translate_failures(message: str):
    """
    Turn unexpected failures into ``UnexpectedError(message)``.

    Known ``RoomServiceError`` kinds pass through untouched so their own
    status and message reach the client.
    """
    try:
        yield
    except RoomServiceError:
        raise
    except Exception as exc:
        logger.exception(f"{message}: {exc}")
        raise UnexpectedError(message, error=str(exc)) from exc


# ---------- List / search rooms ----------


@router.get("", response_model=schemas.RoomListEnvelope)
def list_rooms(
    search: Optional[str] = None,
    type: Optional[str] = None,
    status: Optional[str] = None,
    repo: RoomRepository = Depends(get_repository),
):
    """
    Retrieve rooms with optional filters.

    Behavior
    --------
    - ``search`` matches the room number or description, case-insensitively.
    - ``type`` / ``status`` restrict the result unless absent or ``"all"``.
    - Most recently created rooms come first; no pagination.

    Returns
    -------
    RoomListEnvelope
        ``{success, count, data}``.

    Raises
    ------
    RoomValidationError
        If ``type`` or ``status`` is not a known value.
    """
    try:
        room_filter = schemas.RoomFilter(search=search, type=type, status=status)
    except ValidationError as exc:
        raise RoomValidationError(describe_validation_errors(exc.errors())) from exc

    with translate_failures("Error fetching rooms"):
        rooms = repo.list_rooms(room_filter)
    data = [schemas.RoomRead.model_validate(r) for r in rooms]
    return schemas.RoomListEnvelope(count=len(data), data=data)


@router.get("/{room_id}", response_model=schemas.RoomEnvelope)
def get_room(room_id: str, repo: RoomRepository = Depends(get_repository)):
    """
    Retrieve a single room by its ID.

    Raises
    ------
    NotFoundError
        If the room does not exist.
    """
    with translate_failures("Error fetching room"):
        room = repo.get_room_by_id(room_id)
    return schemas.RoomEnvelope(data=schemas.RoomRead.model_validate(room))


# ---------- Create / update / delete ----------


@router.post("", response_model=schemas.RoomMessageEnvelope, status_code=status.HTTP_201_CREATED)
def create_room(room_in: schemas.RoomCreate, repo: RoomRepository = Depends(get_repository)):
    """
    Create a new room.

    Behavior
    --------
    - Requires room number, type, price and status.
    - Ensures that the (trimmed) room number is unique.

    Raises
    ------
    RoomValidationError
        If a required field is missing.
    ConflictError
        If a room with the same number already exists.
    """
    missing = room_in.missing(*CREATE_REQUIRED)
    if missing:
        raise RoomValidationError(
            "Please provide all required fields",
            error=f"Missing: {', '.join(missing)}",
        )

    with translate_failures("Error creating room"):
        room = repo.create_room(room_in)
    return schemas.RoomMessageEnvelope(
        message="Room created successfully",
        data=schemas.RoomRead.model_validate(room),
    )


@router.put("/{room_id}", response_model=schemas.RoomMessageEnvelope)
def update_room(
    room_id: str,
    payload: Optional[Dict[str, Any]] = Body(default=None),
    repo: RoomRepository = Depends(get_repository),
):
    """
    Update an existing room.

    Behavior
    --------
    - The room is looked up before the body is validated, so an unknown
      id is reported as 404 whatever the body holds.
    - Only the fields present in the body are changed.
    - A changed room number must remain unique.

    Raises
    ------
    NotFoundError
        If the room does not exist.
    RoomValidationError
        If a field holds an invalid value.
    ConflictError
        If the new room number belongs to another room.
    """
    with translate_failures("Error updating room"):
        repo.get_room_by_id(room_id)

    try:
        update_data = schemas.RoomUpdate.model_validate(payload or {})
    except ValidationError as exc:
        raise RoomValidationError(
            "Invalid room data",
            error=describe_validation_errors(exc.errors()),
        ) from exc

    with translate_failures("Error updating room"):
        room = repo.update_room(room_id, update_data)
    return schemas.RoomMessageEnvelope(
        message="Room updated successfully",
        data=schemas.RoomRead.model_validate(room),
    )


@router.delete("/{room_id}", response_model=schemas.MessageEnvelope)
def delete_room(room_id: str, repo: RoomRepository = Depends(get_repository)):
    """
    Permanently delete a room.

    Raises
    ------
    NotFoundError
        If the room does not exist.
    """
    with translate_failures("Error deleting room"):
        repo.delete_room(room_id)
    return schemas.MessageEnvelope(message="Room deleted successfully")


# ---------- Application factory ----------


def _envelope(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    body = schemas.ErrorEnvelope(message=message, error=error)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RoomServiceError)
    async def room_error_handler(request: Request, exc: RoomServiceError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _envelope(
            status.HTTP_400_BAD_REQUEST,
            "Invalid room data",
            describe_validation_errors(exc.errors()),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # A known path called with another method is just as unmatched.
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            return _envelope(status.HTTP_404_NOT_FOUND, "Route not found")
        return _envelope(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _envelope(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Something went wrong!",
            str(exc),
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the Rooms service application.

    Parameters
    ----------
    settings : Settings, optional
        Runtime configuration; read from the environment when omitted.

    Returns
    -------
    FastAPI
        Application whose ``state.context`` holds the engine and session
        factory for the lifetime of the process.
    """
    settings = settings or Settings.from_env()
    context = build_context(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        context.create_schema()
        logger.info(f"{SERVICE_NAME} service ready")
        yield
        context.dispose()
        logger.info(f"{SERVICE_NAME} service stopped")

    app = FastAPI(title="Rooms Service", version="1.0.0", lifespan=lifespan)
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)")
        return response

    register_exception_handlers(app)

    @app.get(f"{settings.api_prefix}/health", response_model=schemas.MessageEnvelope)
    def health():
        """
        Health-check endpoint for the Rooms service.
        """
        return schemas.MessageEnvelope(message="Server is running")

    app.include_router(router, prefix=settings.api_prefix)
    return app


def run() -> None:
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
