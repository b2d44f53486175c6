"""
roadmap-verifier: HTTP collaborator

File: src/roadmap_verifier/verification/transport.py
Last updated: 2026-10-19

Purpose
- Define the HTTP capability used by ``http_ok`` checks and the probe negotiator:
  ``(url, method, headers, body) -> (status, text)``.
- Provide the default ``httpx``-backed implementation.

Non-functional requirements
- Deadlines belong to the transport; callers configure ``timeout_seconds``.
- Transport errors propagate to the caller, which records them as check failures.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_USER_AGENT = "roadmap-verifier/0.1"


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    text: str

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300


@runtime_checkable
class HttpTransport(Protocol):
    """Pluggable async HTTP capability."""

    async def request(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: str | None = None,
    ) -> HttpResponse: ...


class HttpxTransport(HttpTransport):
    """``httpx.AsyncClient`` transport; one client per request keeps calls stateless."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._timeout = httpx.Timeout(timeout_seconds)
        self._user_agent = user_agent
        self._transport = transport

    async def request(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        body: str | None = None,
    ) -> HttpResponse:
        merged_headers = {"user-agent": self._user_agent}
        merged_headers.update(headers or {})
        async with httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            response = await client.request(
                method.upper(),
                url,
                headers=merged_headers,
                content=body.encode("utf-8") if body is not None else None,
            )
        return HttpResponse(status=response.status_code, text=response.text)


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_USER_AGENT",
    "HttpResponse",
    "HttpTransport",
    "HttpxTransport",
]
