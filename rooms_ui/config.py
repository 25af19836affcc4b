import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class UISettings:
    """
    Runtime configuration for the Rooms UI.

    Attributes
    ----------
    api_url : str
        Base address of the Rooms API, including its path prefix.
    host : str
        Interface the UI server binds to.
    port : int
        Listening port of the UI server.
    redis_url : str, optional
        Redis used to cache room lists; caching is off when unset.
    cache_ttl_seconds : int
        Lifetime of cached room lists.
    request_timeout : float
        Timeout in seconds of each call to the API.
    log_level : str
        Root logging level name.
    """
    api_url: str = "http://localhost:5000/api"
    host: str = "0.0.0.0"
    port: int = 3000
    redis_url: Optional[str] = None
    cache_ttl_seconds: int = 30
    request_timeout: float = 5.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "UISettings":
        return cls(
            api_url=os.getenv("ROOMS_API_URL", "http://localhost:5000/api"),
            host=os.getenv("UI_HOST", "0.0.0.0"),
            port=int(os.getenv("UI_PORT", "3000")),
            redis_url=os.getenv("REDIS_URL") or None,
            cache_ttl_seconds=int(os.getenv("CACHE_TTL_SECONDS", "30")),
            request_timeout=float(os.getenv("ROOMS_API_TIMEOUT", "5.0")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
