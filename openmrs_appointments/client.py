"""Async OpenMRS REST client with session-cookie auth.

Every call opens its own ``httpx.AsyncClient`` and returns a :class:`Result`
instead of raising, so the appointment operations can stay fail-soft.
"""
from __future__ import annotations

import logging
import re
import time
from contextvars import ContextVar, Token
from typing import Any, Iterable, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from . import config
from .result import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# OpenMRS issues a 2h JSESSIONID; refresh a little early.
_SESSION_TTL = 7200 - 300
_SESSION_CACHE: dict[str, float | str | None] = {"id": None, "exp": 0.0}
_JSESSIONID_RE = re.compile(r"JSESSIONID=([^;]+)")

_request_session: ContextVar[str | None] = ContextVar("openmrs_request_session", default=None)


class AuthError(Exception):
    """No usable OpenMRS session could be obtained."""


def bind_session(session_id: str | None) -> Token:
    """Use ``session_id`` for calls made in the current context (e.g. one HTTP request)."""
    return _request_session.set(session_id)


def reset_session(token: Token) -> None:
    _request_session.reset(token)


def invalidate_session() -> None:
    _SESSION_CACHE.update(id=None, exp=0.0)


def _url(path: str) -> str:
    return f"{config.OPENMRS_API_URL}/{path.lstrip('/')}"


async def _login() -> str:
    """Open a session with Basic credentials and cache the JSESSIONID."""
    if not config.OPENMRS_USERNAME or not config.OPENMRS_PASSWORD:
        raise AuthError("no OpenMRS session cookie or credentials configured")

    try:
        async with httpx.AsyncClient(http2=True, timeout=config.HTTP_TIMEOUT) as client:
            resp = await client.get(
                _url("/session"),
                auth=(config.OPENMRS_USERNAME, config.OPENMRS_PASSWORD),
                headers={"Accept": "application/json"},
            )
    except httpx.HTTPError as exc:
        raise AuthError(f"session request failed: {exc}") from exc

    if resp.status_code != 200:
        raise AuthError(f"session request rejected: HTTP {resp.status_code}")
    try:
        authenticated = bool(resp.json().get("authenticated"))
    except ValueError as exc:
        raise AuthError("session response was not JSON") from exc
    match = _JSESSIONID_RE.search(resp.headers.get("set-cookie", ""))
    if not authenticated or not match:
        raise AuthError("OpenMRS did not authenticate the configured user")

    session_id = match.group(1)
    _SESSION_CACHE.update(id=session_id, exp=time.time() + _SESSION_TTL)
    logger.info("Opened OpenMRS session for %s", config.OPENMRS_USERNAME)
    return session_id


async def get_session_id() -> str:
    """Request-bound session first, then the configured cookie, then a cached login."""
    scoped = _request_session.get()
    if scoped:
        return scoped
    if config.OPENMRS_SESSION_ID:
        return config.OPENMRS_SESSION_ID
    if _SESSION_CACHE["id"] and time.time() < _SESSION_CACHE["exp"]:
        return _SESSION_CACHE["id"]  # type: ignore
    return await _login()


async def auth_headers() -> dict[str, str]:
    session_id = await get_session_id()
    return {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "Cookie": f"JSESSIONID={session_id}",
    }


async def request(
    method: str,
    path: str,
    *,
    source: str,
    params: dict[str, Any] | None = None,
    json: Any = None,
    body_limit: int = 300,
) -> Result[Any]:
    """Send one authenticated call and decode its JSON body.

    ``source`` names the operation in log lines. Failed bodies are logged
    truncated to ``body_limit`` characters.
    """
    try:
        headers = await auth_headers()
    except AuthError as exc:
        logger.error("%s: authentication unavailable: %s", source, exc)
        return Err(ErrorKind.AUTH, detail=str(exc))

    try:
        async with httpx.AsyncClient(http2=True, timeout=config.HTTP_TIMEOUT) as client:
            resp = await client.request(method, _url(path), headers=headers, params=params, json=json)
    except httpx.HTTPError as exc:
        logger.error("%s: network error calling %s %s: %s", source, method, path, exc)
        return Err(ErrorKind.TRANSPORT, detail=str(exc))

    if resp.status_code in (401, 403):
        invalidate_session()
        logger.error("%s: OpenMRS refused the session (HTTP %s)", source, resp.status_code)
        return Err(ErrorKind.AUTH, status=resp.status_code)

    if resp.status_code == 404:
        logger.warning("%s: resource not found at %s (Status 404).", source, path)
        return Err(ErrorKind.NOT_FOUND, status=404, detail=resp.text[:body_limit])

    if not resp.is_success:
        detail = resp.text[:body_limit]
        logger.error("%s failed (%s). Error: %s", source, resp.status_code, detail)
        return Err(ErrorKind.REJECTED, status=resp.status_code, detail=detail)

    try:
        return Ok(resp.json())
    except ValueError:
        logger.error("%s: response from %s was not valid JSON", source, path)
        return Err(ErrorKind.PARSE, status=resp.status_code, detail=resp.text[:body_limit])


def parse_one(result: Result[Any], model: type[M], source: str) -> Result[M]:
    if not result.ok:
        return result
    try:
        return Ok(model.model_validate(result.value))
    except ValidationError as exc:
        logger.error("%s: unexpected response shape: %s", source, exc)
        return Err(ErrorKind.PARSE, detail=str(exc)[:300])


def parse_list(
    result: Result[Any],
    model: type[M],
    source: str,
    *,
    key: str | None = None,
    skip_retired: bool = False,
) -> Result[list[M]]:
    """Decode a JSON array (or ``payload[key]``) into models."""
    if not result.ok:
        return result
    payload = result.value
    items: Iterable[Any] = payload.get(key) if key and isinstance(payload, dict) else payload
    if not isinstance(items, list):
        logger.error("%s: expected a list in the response", source)
        return Err(ErrorKind.PARSE, detail="expected a list")
    if skip_retired:
        items = [item for item in items if not (isinstance(item, dict) and item.get("retired"))]
    try:
        return Ok([model.model_validate(item) for item in items])
    except ValidationError as exc:
        logger.error("%s: unexpected response shape: %s", source, exc)
        return Err(ErrorKind.PARSE, detail=str(exc)[:300])
