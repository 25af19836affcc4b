import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import urlencode

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from common.cache import JsonCache
from common.logging_setup import configure_logging
from rooms_service.errors import describe_validation_errors
from rooms_service.schemas import RoomRead

from .client import BackendUnavailableError, RoomsApiError, RoomsClient
from .config import UISettings
from .forms import STATUS_CHOICES, TYPE_CHOICES, ListFilters, RoomForm

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
LIST_CACHE_PREFIX = "rooms:list:"

templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


@dataclass
class UIContext:
    settings: UISettings
    client: RoomsClient
    cache: JsonCache

    def load_rooms(self, filters: ListFilters) -> List[RoomRead]:
        """
        Fetch the filtered room list, served from the cache when possible.
        """
        key = filters.cache_key()
        cached = self.cache.get(key)
        if cached is not None:
            return [RoomRead.model_validate(item) for item in cached]

        rooms = self.client.get_rooms(
            search=filters.search,
            type=filters.type,
            status=filters.status,
        )
        self.cache.set(key, [r.model_dump(mode="json") for r in rooms])
        return rooms

    def invalidate_rooms(self) -> None:
        self.cache.delete_prefix(LIST_CACHE_PREFIX)


def get_ui(request: Request) -> UIContext:
    return request.app.state.ui


def _redirect_to_list(filters: ListFilters, notice: str, level: str = "success") -> RedirectResponse:
    params = filters.query_string()
    extra = urlencode({"notice": notice, "level": level})
    url = f"/rooms?{params}&{extra}" if params else f"/rooms?{extra}"
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def render_rooms_page(
    request: Request,
    ui: UIContext,
    filters: ListFilters,
    form: Optional[RoomForm] = None,
    editing: Optional[RoomRead] = None,
    deleting: Optional[RoomRead] = None,
    notice: Optional[str] = None,
    level: str = "success",
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    rooms: List[RoomRead] = []
    load_error = None
    try:
        rooms = ui.load_rooms(filters)
    except BackendUnavailableError as exc:
        load_error = str(exc)
    except RoomsApiError as exc:
        load_error = exc.message

    return templates.TemplateResponse(
        request,
        "rooms.html",
        {
            "rooms": rooms,
            "load_error": load_error,
            "filters": filters,
            "filter_query": filters.query_string(),
            "form": form,
            "editing": editing,
            "deleting": deleting,
            "notice": notice,
            "level": level,
            "type_choices": TYPE_CHOICES,
            "status_choices": STATUS_CHOICES,
        },
        status_code=status_code,
    )


# ---------- Pages ----------


def index(request: Request):
    return templates.TemplateResponse(request, "index.html", {})


def rooms_page(request: Request, ui: UIContext = Depends(get_ui)):
    """
    List/filter view, optionally with the create/edit or delete modal open.

    Query parameters
    ----------------
    search, type, status
        Current filters.
    form=new
        Open a blank create form.
    edit=<id> / delete=<id>
        Open the edit form or the delete confirmation for that room.
    notice, level
        Transient notification left by the previous action.
    """
    params = request.query_params
    filters = ListFilters.from_mapping(params)
    notice = params.get("notice")
    level = params.get("level", "success")

    form = None
    editing = None
    deleting = None
    target = params.get("edit") or params.get("delete")
    if target:
        try:
            room = ui.client.get_room(target)
        except RoomsApiError as exc:
            notice, level = exc.message, "error"
        else:
            if params.get("edit"):
                editing, form = room, RoomForm.from_room(room)
            else:
                deleting = room
    elif params.get("form") == "new":
        form = RoomForm.blank()

    return render_rooms_page(
        request, ui, filters,
        form=form, editing=editing, deleting=deleting,
        notice=notice, level=level,
    )


# ---------- Mutations ----------


async def submitted_form(request: Request) -> Tuple[RoomForm, ListFilters]:
    """Parse a modal submission and the list filters it came from."""
    data = await request.form()
    fields = {key: str(value) for key, value in data.items()}
    filters = ListFilters.from_query_string(fields.pop("filters", ""))
    return RoomForm.from_submission(fields), filters


def create_room(
    request: Request,
    submission: Tuple[RoomForm, ListFilters] = Depends(submitted_form),
    ui: UIContext = Depends(get_ui),
):
    form, filters = submission

    def reject(message: str):
        return render_rooms_page(
            request, ui, filters, form=form, notice=message, level="error",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    problem = form.validate()
    if problem:
        return reject(problem)
    try:
        ui.client.create_room(form.to_create())
    except ValidationError as exc:
        return reject(describe_validation_errors(exc.errors()))
    except RoomsApiError as exc:
        return reject(exc.message)

    ui.invalidate_rooms()
    return _redirect_to_list(filters, "Room created successfully")


def update_room(
    room_id: str,
    request: Request,
    submission: Tuple[RoomForm, ListFilters] = Depends(submitted_form),
    ui: UIContext = Depends(get_ui),
):
    form, filters = submission

    def reject(message: str):
        try:
            editing = ui.client.get_room(room_id)
        except RoomsApiError:
            return _redirect_to_list(filters, message, "error")
        return render_rooms_page(
            request, ui, filters, form=form, editing=editing,
            notice=message, level="error",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    problem = form.validate()
    if problem:
        return reject(problem)
    try:
        ui.client.update_room(room_id, form.to_update())
    except ValidationError as exc:
        return reject(describe_validation_errors(exc.errors()))
    except RoomsApiError as exc:
        return reject(exc.message)

    ui.invalidate_rooms()
    return _redirect_to_list(filters, "Room updated successfully")


def delete_room(
    room_id: str,
    submission: Tuple[RoomForm, ListFilters] = Depends(submitted_form),
    ui: UIContext = Depends(get_ui),
):
    _, filters = submission
    try:
        message = ui.client.delete_room(room_id)
    except RoomsApiError as exc:
        return _redirect_to_list(filters, exc.message, "error")

    ui.invalidate_rooms()
    return _redirect_to_list(filters, message or "Room deleted successfully")


# ---------- Application factory ----------


def create_app(
    settings: Optional[UISettings] = None,
    client: Optional[RoomsClient] = None,
    cache: Optional[JsonCache] = None,
) -> FastAPI:
    """
    Build the browser UI application.

    Parameters
    ----------
    settings : UISettings, optional
        Read from the environment when omitted.
    client : RoomsClient, optional
        Data-access client; built from ``settings.api_url`` when omitted.
    cache : JsonCache, optional
        Room list cache; built from ``settings.redis_url`` when omitted.
    """
    settings = settings or UISettings.from_env()
    client = client or RoomsClient(settings.api_url, timeout=settings.request_timeout)
    cache = cache or JsonCache.from_url(settings.redis_url, settings.cache_ttl_seconds)
    ui = UIContext(settings=settings, client=client, cache=cache)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        ui.client.close()

    app = FastAPI(title="Rooms UI", version="1.0.0", lifespan=lifespan, docs_url=None, redoc_url=None)
    app.state.ui = ui
    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

    app.add_api_route("/", index, methods=["GET"], response_class=HTMLResponse)
    app.add_api_route("/rooms", rooms_page, methods=["GET"], response_class=HTMLResponse)
    app.add_api_route("/rooms", create_room, methods=["POST"], response_class=HTMLResponse)
    app.add_api_route("/rooms/{room_id}", update_room, methods=["POST"], response_class=HTMLResponse)
    app.add_api_route("/rooms/{room_id}/delete", delete_room, methods=["POST"], response_class=HTMLResponse)
    return app


def run() -> None:
    import uvicorn

    settings = UISettings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
