"""Ports for fetching provider records.

Drivers advertise what they can do through ``capabilities``; callers check with
``supports`` before relying on optional behaviour such as parent extraction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from kinsync.domain.model import DriverCapability

if TYPE_CHECKING:
    from kinsync.domain.model import ParentReference, Provider, ProviderRecord


@runtime_checkable
class ProviderDriver(Protocol):
    """Fetches raw records from one provider.

    ``fetch_record`` may raise ``ProviderAuthError``, ``ProviderNotFoundError``,
    ``ProviderRedirectError`` or ``ProviderFetchError``.
    """

    @property
    def provider(self) -> Provider: ...

    @property
    def capabilities(self) -> frozenset[DriverCapability]: ...

    async def fetch_record(self, external_id: str) -> ProviderRecord: ...

    async def extract_parent_references(self, external_id: str) -> list[ParentReference]: ...


def supports(driver: ProviderDriver, capability: DriverCapability) -> bool:
    return capability in driver.capabilities


def supports_parent_extraction(driver: ProviderDriver) -> bool:
    return supports(driver, DriverCapability.PARENT_EXTRACTION)
