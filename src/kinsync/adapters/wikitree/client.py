"""WikiTree API client."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx

from kinsync.adapters.http_resilience import ProviderHttpClient
from kinsync.config.wikitree import WIKITREE_API_PATH

from .schema import WikiTreeProfileResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from kinsync.config.http_resilience import ProviderHttpConfig
    from kinsync.config.wikitree import WikiTreeConfig

log = getLogger(__name__)

PROFILE_FIELDS: Final[tuple[str, ...]] = (
    "Id",
    "Name",
    "FirstName",
    "MiddleName",
    "RealName",
    "LastNameAtBirth",
    "LastNameCurrent",
    "LastNameOther",
    "Nicknames",
    "Gender",
    "BirthDate",
    "DeathDate",
    "BirthLocation",
    "DeathLocation",
    "Father",
    "Mother",
    "Parents",
)

_AUTH_STATUSES: Final[frozenset[int]] = frozenset({401, 403})


class WikiTreeAPIError(RuntimeError):
    """Raised when the WikiTree API returns an unexpected response."""


class WikiTreeAuthError(WikiTreeAPIError):
    """The profile is private or the session lacks permission."""


class WikiTreeNotFoundError(WikiTreeAPIError):
    """No profile exists under the requested key."""


class WikiTreeClient:
    """Low-level HTTP client for the WikiTree API.

    One HTTP client is opened on first use and reused until ``aclose`` so the
    rate limiter and the response cache cover every lookup.
    """

    def __init__(
        self,
        *,
        config: WikiTreeConfig,
        client_factory: Callable[[ProviderHttpConfig], ProviderHttpClient] | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or ProviderHttpClient
        self._http: ProviderHttpClient | None = None

    async def get_profile(self, key: str) -> WikiTreeProfileResponse:
        params = {
            "action": "getProfile",
            "key": key,
            "fields": ",".join(PROFILE_FIELDS),
            "resolveRedirect": "1",
            "appId": self._config.app_id,
        }
        response = await self._client().get(WIKITREE_API_PATH, params=params)
        return _parse_profile_response(response, key)

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _client(self) -> ProviderHttpClient:
        if self._http is None:
            self._http = self._client_factory(self._config.http)
        return self._http


def _parse_profile_response(response: httpx.Response, key: str) -> WikiTreeProfileResponse:
    if response.status_code in _AUTH_STATUSES:
        raise WikiTreeAuthError(f"WikiTree refused access to {key} ({response.status_code})")
    if response.status_code == httpx.codes.NOT_FOUND:
        raise WikiTreeNotFoundError(f"WikiTree profile {key} not found")
    response.raise_for_status()

    payload = response.json()
    # getProfile answers with a one-element list
    if isinstance(payload, list) and payload:
        payload = payload[0]
    if not isinstance(payload, dict):
        raise WikiTreeAPIError("Unexpected WikiTree response payload")

    result = WikiTreeProfileResponse.model_validate(payload)
    if result.ok:
        return result
    status = str(result.status)
    if "permission" in status.lower():
        raise WikiTreeAuthError(f"WikiTree profile {key}: {status}")
    log.debug("WikiTree returned status %r for %s", status, key)
    raise WikiTreeNotFoundError(f"WikiTree profile {key}: {status or 'no profile returned'}")
