"""Provider cache: fetch through drivers, append immutable snapshots.

Refreshing only ever appends a ``ProviderRecord``; canonical data and overrides
are never touched here. Redirects reported by a driver are absorbed into the
identity mapping and the fetch is retried once under the new id.
"""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

from kinsync.domain.errors import (
    NotLinkedError,
    ProviderFetchError,
    ProviderRedirectError,
    ValidationError,
)
from kinsync.domain.identity import IdentityResolver
from kinsync.domain.model import DriverCapability, ProviderRecord
from kinsync.domain.ports import supports

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping
    from uuid import UUID

    from kinsync.domain.model import ParentReference, Provider
    from kinsync.domain.ports import ProviderDriver, UnitOfWorkFactory

log = getLogger(__name__)


class MissingDriverError(ValidationError):
    """No driver is configured for the provider."""


class ProviderCache:
    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        drivers: Mapping[Provider, ProviderDriver],
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._drivers = drivers

    def driver(self, provider: Provider) -> ProviderDriver:
        driver = self._drivers.get(provider)
        if driver is None:
            raise MissingDriverError(f"no driver configured for {provider}")
        return driver

    def latest(self, provider: Provider, external_id: str) -> ProviderRecord | None:
        with self._uow_factory() as uow:
            return uow.repositories.provider_records.latest(provider, external_id)

    async def refresh(self, person_id: UUID, provider: Provider) -> ProviderRecord:
        """Fetch the person's provider record and append it as the newest snapshot."""

        with self._uow_factory() as uow:
            external_id = IdentityResolver(uow.repositories.identities).resolve(
                person_id, provider
            )
        if external_id is None:
            raise NotLinkedError(person_id, provider)

        record = await self.fetch(provider, external_id)
        self._append(record)
        log.info(
            "Refreshed %s record %s for person %s", provider, record.external_id, person_id
        )
        return record

    async def fetch(self, provider: Provider, external_id: str) -> ProviderRecord:
        """Fetch a record, following at most one redirect.

        The snapshot is keyed by the id it was fetched under, so lookups through
        the identity mapping find it even when the provider spells the id
        differently (case, numeric user ids).
        """

        driver = self.driver(provider)
        fetched_id, record = await self._follow_redirect(
            provider, external_id, driver.fetch_record
        )
        if record.external_id != fetched_id:
            record = replace(record, external_id=fetched_id)
        return record

    async def parent_references(
        self,
        provider: Provider,
        external_id: str,
        *,
        refresh: bool = False,
    ) -> tuple[str, tuple[ParentReference, ...]] | None:
        """Parent references for a provider record as ``(external_id, references)``.

        Cached references are used unless ``refresh`` is set. Otherwise the driver
        extracts them, and the result is appended as a new snapshot so later
        "use this parent" actions can read it. The returned id differs from the
        requested one when the provider redirected. ``None`` means the driver
        cannot extract parents.
        """

        if not refresh:
            cached = self.latest(provider, external_id)
            if cached is not None and cached.parent_references:
                return external_id, cached.parent_references

        driver = self.driver(provider)
        if not supports(driver, DriverCapability.PARENT_EXTRACTION):
            return None

        external_id, references = await self._follow_redirect(
            provider, external_id, driver.extract_parent_references
        )

        found = tuple(references)
        previous = self.latest(provider, external_id)
        # copied fields keep the time they were actually fetched
        snapshot = (
            replace(previous, parent_references=found)
            if previous is not None
            else ProviderRecord(
                provider=provider, external_id=external_id, fields={}, parent_references=found
            )
        )
        self._append(snapshot)
        return external_id, found

    async def _follow_redirect[T](
        self,
        provider: Provider,
        external_id: str,
        call: Callable[[str], Awaitable[T]],
    ) -> tuple[str, T]:
        """Run ``call`` for the id, absorbing one redirect; a second one is a fetch error."""

        try:
            return external_id, await call(external_id)
        except ProviderRedirectError as redirect:
            self.absorb_redirect(provider, external_id, redirect.new_external_id)
            target = redirect.new_external_id
            try:
                return target, await call(target)
            except ProviderRedirectError as again:
                message = f"redirected more than once (last {again.new_external_id})"
                raise ProviderFetchError(provider, external_id, message) from again

    def absorb_redirect(
        self, provider: Provider, old_external_id: str, new_external_id: str
    ) -> None:
        with self._uow_factory() as uow:
            IdentityResolver(uow.repositories.identities).absorb_redirect(
                provider, old_external_id, new_external_id
            )
            uow.commit()

    def _append(self, record: ProviderRecord) -> None:
        with self._uow_factory() as uow:
            uow.repositories.provider_records.append(record)
            uow.commit()
