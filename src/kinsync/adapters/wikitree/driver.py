"""WikiTree implementation of the provider driver port."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, ClassVar

import httpx

from kinsync.domain.errors import (
    ProviderAuthError,
    ProviderFetchError,
    ProviderNotFoundError,
    ProviderRedirectError,
)
from kinsync.domain.model import DriverCapability, Provider

from .client import WikiTreeAPIError, WikiTreeAuthError, WikiTreeClient, WikiTreeNotFoundError
from .translator import parent_references, translate_profile

if TYPE_CHECKING:
    from kinsync.domain.model import ParentReference, ProviderRecord

    from .schema import WikiTreeProfile

log = getLogger(__name__)


class WikiTreeDriver:
    """Fetch WikiTree profiles and translate them into provider snapshots.

    WikiTree resolves merged profiles server-side; when the profile that comes
    back carries a different WikiTree ID than the one requested the driver
    reports a redirect so the identity mapping can follow it.
    """

    provider: ClassVar[Provider] = Provider.WIKITREE
    capabilities: ClassVar[frozenset[DriverCapability]] = frozenset(
        {DriverCapability.FETCH_RECORD, DriverCapability.PARENT_EXTRACTION}
    )

    def __init__(self, client: WikiTreeClient) -> None:
        self._client = client

    async def fetch_record(self, external_id: str) -> ProviderRecord:
        profile = await self._load(external_id)
        return translate_profile(profile)

    async def extract_parent_references(self, external_id: str) -> list[ParentReference]:
        profile = await self._load(external_id)
        return list(parent_references(profile))

    async def _load(self, external_id: str) -> WikiTreeProfile:
        try:
            response = await self._client.get_profile(external_id)
        except WikiTreeAuthError as exc:
            raise ProviderAuthError(self.provider, external_id, str(exc)) from exc
        except WikiTreeNotFoundError as exc:
            raise ProviderNotFoundError(self.provider, external_id, str(exc)) from exc
        except (WikiTreeAPIError, httpx.HTTPError, ValueError) as exc:
            log.warning("WikiTree fetch failed for %s: %s", external_id, exc)
            raise ProviderFetchError(self.provider, external_id, str(exc)) from exc

        profile = response.profile
        if profile is None:
            raise ProviderNotFoundError(self.provider, external_id, "no profile returned")
        if _is_wikitree_id(external_id) and _key(profile.name) != _key(external_id):
            raise ProviderRedirectError(self.provider, external_id, profile.name)
        return profile


def _is_wikitree_id(key: str) -> bool:
    """``Smith-123`` style keys; numeric user ids never redirect."""

    return not key.isdigit()


def _key(value: str) -> str:
    return value.strip().replace(" ", "_").casefold()
