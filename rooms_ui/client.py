import logging
from typing import Any, Dict, List, Optional, Union

from urllib.parse import quote

import httpx
from pydantic import ValidationError

from rooms_service.schemas import RoomCreate, RoomRead, RoomUpdate

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An error occurred"
UNEXPECTED_RESPONSE_MESSAGE = "Unexpected response from the rooms service"


class RoomsApiError(Exception):
    """
    The Rooms API answered with a failure envelope or a non-2xx status.

    ``message`` carries the backend's own text so it can be shown to the
    user verbatim.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class BackendUnavailableError(RoomsApiError):
    """The Rooms API could not be reached at all."""


class RoomsClient:
    """
    Thin typed wrapper over the Rooms REST API.

    Parameters
    ----------
    base_url : str, optional
        Address of the API including its prefix, e.g.
        ``http://localhost:5000/api``. Ignored when ``http`` is given.
    http : httpx.Client, optional
        Pre-built client; its ``base_url`` must point at the API prefix.
    timeout : float
        Per-request timeout used when the client is built here.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 5.0,
    ):
        if http is None:
            if base_url is None:
                raise ValueError("RoomsClient needs either base_url or http")
            http = httpx.Client(base_url=base_url, timeout=timeout)
        self.http = http

    def close(self) -> None:
        self.http.close()

    # ---------- Transport ----------

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            resp = self.http.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            logger.error(f"Rooms API unreachable on {method} {path}: {exc}")
            raise BackendUnavailableError(f"Failed to reach the rooms service: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.is_error or not body.get("success", False):
            message = body.get("message") or DEFAULT_ERROR_MESSAGE
            logger.info(f"Rooms API {method} {path} failed ({resp.status_code}): {message}")
            raise RoomsApiError(message, status_code=resp.status_code)
        return body

    @staticmethod
    def _payload(data: Union[RoomCreate, RoomUpdate, Dict[str, Any]]) -> Dict[str, Any]:
        if isinstance(data, dict):
            return data
        return data.model_dump(mode="json", by_alias=True, exclude_unset=True)

    @staticmethod
    def _room_path(room_id: str) -> str:
        # Ids are opaque; a "/" or ".." in one must not reach another route.
        return f"/rooms/{quote(str(room_id), safe='')}"

    @staticmethod
    def _room(body: Dict[str, Any]) -> RoomRead:
        data = body.get("data")
        if not isinstance(data, dict):
            raise RoomsApiError(UNEXPECTED_RESPONSE_MESSAGE)
        try:
            return RoomRead.model_validate(data)
        except ValidationError as exc:
            raise RoomsApiError(UNEXPECTED_RESPONSE_MESSAGE) from exc

    # ---------- Operations ----------

    def get_rooms(
        self,
        search: Optional[str] = None,
        type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[RoomRead]:
        params = {
            key: value
            for key, value in (("search", search), ("type", type), ("status", status))
            if value
        }
        body = self._request("GET", "/rooms", params=params)
        items = body.get("data", [])
        if not isinstance(items, list):
            raise RoomsApiError(UNEXPECTED_RESPONSE_MESSAGE)
        return [self._room({"data": item}) for item in items]

    def get_room(self, room_id: str) -> RoomRead:
        body = self._request("GET", self._room_path(room_id))
        return self._room(body)

    def create_room(self, data: Union[RoomCreate, Dict[str, Any]]) -> RoomRead:
        body = self._request("POST", "/rooms", json=self._payload(data))
        return self._room(body)

    def update_room(self, room_id: str, data: Union[RoomUpdate, Dict[str, Any]]) -> RoomRead:
        body = self._request("PUT", self._room_path(room_id), json=self._payload(data))
        return self._room(body)

    def delete_room(self, room_id: str) -> str:
        body = self._request("DELETE", self._room_path(room_id))
        return body.get("message", "")

    def health(self) -> str:
        body = self._request("GET", "/health")
        return body.get("message", "")
