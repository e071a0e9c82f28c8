"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import ProviderDriver, supports, supports_parent_extraction
from .persistence import (
    ClaimRepository,
    ExternalIdentityRepository,
    OverrideRepository,
    PersonRepository,
    ProviderRecordRepository,
    RelationshipRepository,
    Repository,
    VitalEventRepository,
)
from .unit_of_work import (
    ReconciliationRepositories,
    ReconciliationUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
    UnitOfWorkFactory,
)

__all__ = [
    "ClaimRepository",
    "ExternalIdentityRepository",
    "OverrideRepository",
    "PersonRepository",
    "ProviderDriver",
    "ProviderRecordRepository",
    "ReconciliationRepositories",
    "ReconciliationUnitOfWork",
    "RelationshipRepository",
    "Repository",
    "RepositoryCollection",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "VitalEventRepository",
    "supports",
    "supports_parent_extraction",
]
