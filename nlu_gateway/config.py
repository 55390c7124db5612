import threading
from enum import Enum
from os import getenv
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AuthScheme(str, Enum):
    BEARER = "bearer"                       # API.ai / RASA style
    SUBSCRIPTION_KEY = "subscription-key"   # LUIS style


class RouteRule(BaseModel):
    """One entry of the relay table.

    ``path`` is the local pattern (``{name}`` segments capture path params),
    ``upstream_path`` is appended verbatim to the live base URL after
    interpolation.
    """
    path: str
    methods: list[str]
    upstream_method: str
    upstream_path: str
    auth: AuthScheme = AuthScheme.BEARER
    body: Literal["none", "inbound", "app_key"] = "none"
    response: Literal["json", "empty"] = "json"
    error_message: str


class RuntimeConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: str = ""
    app_id: str = ""
    app_key: str = ""


class Settings(BaseModel):
    base_url: str = ""
    app_id: str = ""
    app_key: str = ""
    upstream_timeout: float = 20.0
    max_body_bytes: int = 50 * 1024 * 1024
    routes: list[RouteRule] = Field(default_factory=list)

    def startup_config(self) -> RuntimeConfig:
        return RuntimeConfig(
            base_url=self.base_url,
            app_id=self.app_id,
            app_key=self.app_key,
        )


class ConfigStore:
    """
    Holds the live RuntimeConfig.

    Every update publishes a new immutable RuntimeConfig, so a reader never sees
    fields from two different writes. Unset fields fall back to the startup
    values, not to the previous live ones.
    """
    def __init__(self, defaults: RuntimeConfig):
        self.defaults = defaults
        self._current = defaults
        self._lock = threading.Lock()

    def snapshot(self) -> RuntimeConfig:
        return self._current

    def update(self, payload) -> RuntimeConfig:
        if not isinstance(payload, dict):
            payload = {}

        with self._lock:
            self._current = RuntimeConfig(
                base_url=_field(payload, "url", self.defaults.base_url),
                app_id=_field(payload, "appId", self.defaults.app_id),
                app_key=_field(payload, "appKey", self.defaults.app_key),
            )
            return self._current


def _field(payload: dict, name: str, default: str) -> str:
    value = payload.get(name)
    return str(value) if value else default


ROUTES = [
    RouteRule(path="/entities", methods=["GET"],
              upstream_method="GET", upstream_path="/entities",
              error_message="Error getting entities"),
    RouteRule(path="/entities", methods=["POST", "PUT"],
              upstream_method="PUT", upstream_path="/entities",
              body="inbound", error_message="Error putting entities"),
    RouteRule(path="/intents", methods=["GET"],
              upstream_method="GET", upstream_path="/intents",
              error_message="Error getting intents"),
    RouteRule(path="/intents", methods=["POST"],
              upstream_method="POST", upstream_path="/intents",
              body="inbound", error_message="Error posting intents"),
    RouteRule(path="/userEntities", methods=["POST"],
              upstream_method="POST", upstream_path="/userEntities",
              body="inbound", error_message="Error posting user entities"),
    RouteRule(path="/publish/{appId}", methods=["POST"],
              upstream_method="POST", upstream_path="/{appId}/publish",
              auth=AuthScheme.SUBSCRIPTION_KEY, body="inbound",
              error_message="Error publishing workspace"),
    # versionId is a required query parameter
    RouteRule(path="/assignedkey/{appId}", methods=["POST"],
              upstream_method="POST",
              upstream_path="/{appId}/versions/{versionId}/assignedkey",
              auth=AuthScheme.SUBSCRIPTION_KEY, body="app_key",
              response="empty", error_message="Error assigning key"),
    RouteRule(path="/parse", methods=["POST"],
              upstream_method="POST", upstream_path="/parse",
              body="inbound", error_message="Error posting query"),
]

# startup values, read once per process
settings = Settings(
    base_url=getenv("APIAI_SERVER_URL", ""),
    app_id=getenv("APIAI_APP_ID", ""),
    app_key=getenv("APIAI_APP_KEY", ""),
    upstream_timeout=float(getenv("UPSTREAM_TIMEOUT", "20.0")),
    max_body_bytes=int(getenv("MAX_BODY_BYTES", str(50 * 1024 * 1024))),
    routes=ROUTES,
)
