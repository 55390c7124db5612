import json
import logging
import math
from typing import Any
from urllib.parse import parse_qsl

import httpx
from pydantic import BaseModel, Field

from .config import AuthScheme, RouteRule, RuntimeConfig

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Relay failure, rendered to the caller as ``{status, message}``."""
    def __init__(self, message: str, status: int = 500):
        super().__init__(message)
        self.status = status
        self.message = message


class RelayRequest(BaseModel):
    method: str
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None
    has_body: bool = False


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"{text} is out of range for JSON")
    return value


def loads_strict(raw: bytes | str) -> Any:
    """``json.loads`` that rejects NaN, Infinity and overflowing floats."""
    return json.loads(raw, parse_constant=_reject_constant, parse_float=_finite_float)


def decode_body(raw: bytes, content_type: str | None) -> Any:
    """
    Decode an inbound body the way the callers send it: JSON, or a
    form-encoded flat object. Empty or undecodable bodies become ``{}``.
    """
    if not raw:
        return {}

    if content_type and "application/x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(raw.decode("utf-8", errors="replace")))

    try:
        return loads_strict(raw)
    except ValueError:
        logger.warning("Could not decode inbound body as JSON; using {}")
        return {}


def build_headers(auth: AuthScheme, app_key: str) -> dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if auth is AuthScheme.SUBSCRIPTION_KEY:
        headers["Ocp-Apim-Subscription-Key"] = app_key
    else:
        headers["Authorization"] = "Bearer " + app_key
    return headers


def build_request(rule: RouteRule,
                  config: RuntimeConfig,
                  params: dict[str, str],
                  body: Any = None) -> RelayRequest:
    """
    Build the outbound call for ``rule`` against one config snapshot.

    Path params are interpolated without escaping. A template naming a param
    that no input supplied raises ``UpstreamError``.
    """
    try:
        suffix = rule.upstream_path.format_map(params)
    except KeyError as exc:
        logger.warning("Missing parameter %s for %s", exc, rule.path)
        raise UpstreamError(rule.error_message) from exc

    request = RelayRequest(
        method=rule.upstream_method,
        url=config.base_url + suffix,
        headers=build_headers(rule.auth, config.app_key),
    )
    if rule.body == "inbound":
        request.body, request.has_body = body, True
    elif rule.body == "app_key":
        request.body, request.has_body = config.app_key, True
    return request


async def relay(client: httpx.AsyncClient,
                rule: RouteRule,
                config: RuntimeConfig,
                params: dict[str, str],
                body: Any = None) -> Any:
    """
    Perform exactly one upstream call and return the decoded JSON payload
    (``None`` for routes answering with an empty body).
    """
    outbound = build_request(rule, config, params, body)

    kwargs = {"headers": outbound.headers}
    if outbound.has_body:
        kwargs["content"] = json.dumps(outbound.body).encode("utf-8")

    try:
        resp = await client.request(outbound.method, outbound.url, **kwargs)
        if rule.response == "empty":
            if not resp.is_success:
                raise UpstreamError(resp.reason_phrase or str(resp.status_code))
            return None
        return loads_strict(resp.content)
    except Exception as exc:
        logger.error("%s; %s: %r", rule.error_message, outbound.url, exc)
        raise UpstreamError(rule.error_message) from exc
