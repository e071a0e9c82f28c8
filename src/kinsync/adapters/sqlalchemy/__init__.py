"""SQLAlchemy persistence adapter."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyClaimRepository,
    SqlAlchemyExternalIdentityRepository,
    SqlAlchemyOverrideRepository,
    SqlAlchemyPersonRepository,
    SqlAlchemyProviderRecordRepository,
    SqlAlchemyRelationshipRepository,
    SqlAlchemyVitalEventRepository,
)
from .unit_of_work import (
    SqlAlchemyReconciliationUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyClaimRepository",
    "SqlAlchemyExternalIdentityRepository",
    "SqlAlchemyOverrideRepository",
    "SqlAlchemyPersonRepository",
    "SqlAlchemyProviderRecordRepository",
    "SqlAlchemyReconciliationUnitOfWork",
    "SqlAlchemyRelationshipRepository",
    "SqlAlchemyVitalEventRepository",
    "StartupError",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
