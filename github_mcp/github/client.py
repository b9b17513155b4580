"""GitHub REST/GraphQL client with retry, backoff and error classification."""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel

from ..config import Settings
from ..utils.errors import (
    classify_decode_error,
    classify_status,
    classify_transport_error,
)
from ..utils.security import redact_secrets
from .models import ErrorInfo, HttpOutcome, is_relative_api_path
from .pagination import next_rest_cursor, resolve_page_cursor
from .rate import extract_rate_from_graphql, extract_rate_from_rest

logger = logging.getLogger(__name__)

ACCEPT_GITHUB_JSON = "application/vnd.github+json"
ACCEPT_JSON = "application/json"
ACCEPT_DIFF = "application/vnd.github.v3.diff"
ACCEPT_PATCH = "application/vnd.github.v3.patch"

MAX_RETRIES = 5
BASE_BACKOFF_MS = 200
MAX_BACKOFF_MS = 5000


def compute_backoff(
    attempt: int,
    retry_after: Optional[float] = None,
    rng: Optional[random.Random] = None,
) -> float:
    """Seconds to wait before retry number ``attempt`` (zero-based).

    A server-supplied Retry-After is honoured exactly. Otherwise half of
    ``min(5000ms, 200ms * 2**min(attempt, 5))`` is fixed and the other half
    is uniform jitter.
    """
    if retry_after is not None:
        return retry_after
    capped_ms = min(MAX_BACKOFF_MS, BASE_BACKOFF_MS * (2 ** min(attempt, 5)))
    half = capped_ms / 2
    jitter = (rng or random).uniform(0, half)
    return (half + jitter) / 1000.0


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Retry-After in delta-seconds; anything else is ignored."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def is_retryable_status(status: int) -> bool:
    return status == 429 or 500 <= status <= 599


@dataclass
class RequestSpec:
    """One REST call to make against the API base URL."""

    path: str
    method: str = "GET"
    params: Optional[Dict[str, Any]] = None
    json: Optional[Any] = None
    accept: str = ACCEPT_GITHUB_JSON
    # json | text | bytes | none
    expect: str = "json"
    response_model: Optional[Type[BaseModel]] = None
    follow_redirects: bool = False


@dataclass
class RestPage:
    """One fetched page of a REST listing and where it sits."""

    outcome: HttpOutcome
    page: int
    per_page: int
    resumed_from_link: bool = False

    def next_cursor(self, item_count: int) -> Optional[str]:
        return next_rest_cursor(
            self.outcome.header("link"),
            self.page,
            self.per_page,
            item_count,
            resumed_from_link=self.resumed_from_link,
        )


class GitHubClient:
    """Issues REST and GraphQL calls for tool handlers.

    Transport failures and 429/5xx responses are retried up to MAX_RETRIES
    times; every other outcome is returned as-is in an HttpOutcome. Nothing
    here raises for upstream failures.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings
        self._http = http_client or httpx.AsyncClient(
            headers={"User-Agent": settings.user_agent},
            timeout=httpx.Timeout(settings.timeout_secs),
            follow_redirects=False,
        )
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def url_for(self, path: str) -> str:
        """Absolute URL for an API path.

        Paths taken from Link headers already include any base path prefix
        (e.g. ``/api/v3`` on GitHub Enterprise); it is not repeated.

        Raises:
            ValueError: ``path`` is absolute or otherwise not under the base URL
        """
        if not is_relative_api_path(path):
            raise ValueError(f"Refusing non-relative API path: {path[:80]!r}")
        base = self.settings.api_url.rstrip("/")
        prefix = urlsplit(base).path.rstrip("/")
        if prefix and path.startswith(prefix + "/"):
            path = path[len(prefix):]
        return f"{base}{path}"

    def _headers(self, accept: str, api_version: bool = True) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.settings.require_token()}",
            "Accept": accept,
        }
        if api_version:
            headers["X-GitHub-Api-Version"] = self.settings.api_version
        return headers

    def _redact(self, error: ErrorInfo) -> ErrorInfo:
        message = redact_secrets(error.message, self.settings.token)
        if message == error.message:
            return error
        return error.model_copy(update={"message": message})

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        follow_redirects: bool = False,
        honor_retry_after: bool = True,
    ) -> Tuple[Optional[httpx.Response], Optional[ErrorInfo], int]:
        """Send with retries. Returns (response, transport_error, attempts)."""
        attempt = 0
        while True:
            try:
                response = await self._http.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    json=json,
                    follow_redirects=follow_redirects,
                )
            except httpx.RequestError as e:
                logger.warning(f"{method} {url} failed to send (attempt {attempt + 1}): {e}")
                if attempt < MAX_RETRIES:
                    await self._sleep(compute_backoff(attempt, None, self._rng))
                    attempt += 1
                    continue
                return None, classify_transport_error(e), attempt + 1

            status = response.status_code
            if is_retryable_status(status) and attempt < MAX_RETRIES:
                retry_after = None
                if honor_retry_after:
                    retry_after = parse_retry_after(response.headers.get("retry-after"))
                delay = compute_backoff(attempt, retry_after, self._rng)
                logger.warning(f"{method} {url} retrying (status {status}), backoff {delay:.3f}s")
                await self._sleep(delay)
                attempt += 1
                continue
            return response, None, attempt + 1

    @staticmethod
    def _decode(response: httpx.Response, spec: RequestSpec) -> Any:
        if spec.expect == "none":
            return None
        if spec.expect == "text":
            return response.text
        if spec.expect == "bytes":
            return response.content
        value = response.json()
        if spec.response_model is not None:
            return spec.response_model.model_validate(value)
        return value

    async def rest(self, spec: RequestSpec) -> HttpOutcome:
        """Execute a REST call described by ``spec``."""
        try:
            url = self.url_for(spec.path)
        except ValueError as e:
            logger.warning(str(e))
            return HttpOutcome(error=ErrorInfo(code="bad_request", message=str(e), retriable=False), attempts=0)
        if self.settings.debug:
            logger.info(f"[debug] REST {spec.method} {url} params={spec.params}")

        response, error, attempts = await self._send(
            spec.method,
            url,
            headers=self._headers(spec.accept),
            params={k: v for k, v in (spec.params or {}).items() if v is not None} or None,
            json=spec.json,
            follow_redirects=spec.follow_redirects,
        )
        if response is None:
            return HttpOutcome(error=self._redact(error), attempts=attempts)

        headers = {k.lower(): v for k, v in response.headers.items()}
        rate = extract_rate_from_rest(headers)
        status = response.status_code
        if self.settings.debug:
            logger.info(f"[debug] REST {spec.method} {url} -> {status} link={headers.get('link')}")

        if 200 <= status <= 299:
            try:
                value = self._decode(response, spec)
            except ValueError as e:
                return HttpOutcome(
                    status=status, headers=headers, rate=rate,
                    error=classify_decode_error(e), attempts=attempts,
                )
            return HttpOutcome(value=value, status=status, headers=headers, rate=rate, attempts=attempts)

        error = classify_status(status, response.text)
        return HttpOutcome(
            status=status, headers=headers, rate=rate,
            error=self._redact(error), attempts=attempts,
        )

    async def rest_page(
        self,
        path: str,
        cursor: Optional[str] = None,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        params: Optional[Dict[str, Any]] = None,
        response_model: Optional[Type[BaseModel]] = None,
    ) -> RestPage:
        """Fetch one page of a REST listing.

        A cursor that carries the upstream's exact next path is followed
        verbatim; otherwise ``page``/``per_page`` are sent as query params.
        """
        page, per_page, exact_path = resolve_page_cursor(cursor, page, per_page)
        if exact_path:
            spec = RequestSpec(path=exact_path, response_model=response_model)
        else:
            query = dict(params or {})
            query.update({"per_page": per_page, "page": page})
            spec = RequestSpec(path=path, params=query, response_model=response_model)
        outcome = await self.rest(spec)
        return RestPage(outcome=outcome, page=page, per_page=per_page, resumed_from_link=bool(exact_path))

    async def graphql(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        response_model: Optional[Type[BaseModel]] = None,
    ) -> HttpOutcome:
        """POST a query to the GraphQL endpoint.

        A 2xx body with a non-empty ``errors`` array is returned as a
        terminal ``upstream_error`` (flagged retriable) without retrying.
        """
        url = self.settings.graphql_url
        if self.settings.debug:
            logger.info(f"[debug] GraphQL POST {url} variables={variables}")

        response, error, attempts = await self._send(
            "POST",
            url,
            headers=self._headers(ACCEPT_JSON, api_version=False),
            json={"query": query, "variables": variables or {}},
            honor_retry_after=False,
        )
        if response is None:
            return HttpOutcome(error=self._redact(error), attempts=attempts)

        headers = {k.lower(): v for k, v in response.headers.items()}
        status = response.status_code
        if self.settings.debug:
            logger.info(f"[debug] GraphQL POST {url} -> {status}")

        if not 200 <= status <= 299:
            return HttpOutcome(
                status=status, headers=headers, rate=extract_rate_from_rest(headers),
                error=self._redact(classify_status(status, response.text)), attempts=attempts,
            )

        try:
            payload = response.json()
            if not isinstance(payload, dict):
                raise ValueError("GraphQL response is not an object")
        except ValueError as e:
            return HttpOutcome(
                status=status, headers=headers, rate=extract_rate_from_rest(headers),
                error=classify_decode_error(e), attempts=attempts,
            )

        rate = extract_rate_from_graphql(payload) or extract_rate_from_rest(headers)
        errors = payload.get("errors")
        if errors:
            messages = []
            for item in errors if isinstance(errors, list) else [errors]:
                if isinstance(item, dict) and item.get("message"):
                    messages.append(str(item["message"]))
                else:
                    messages.append(str(item))
            gql_error = ErrorInfo(code="upstream_error", message="; ".join(messages), retriable=True)
            return HttpOutcome(
                status=status, headers=headers, rate=rate,
                error=self._redact(gql_error), attempts=attempts,
            )

        data = payload.get("data")
        if response_model is not None:
            try:
                data = response_model.model_validate(data)
            except ValueError as e:
                return HttpOutcome(
                    status=status, headers=headers, rate=rate,
                    error=classify_decode_error(e), attempts=attempts,
                )
        return HttpOutcome(value=data, status=status, headers=headers, rate=rate, attempts=attempts)
