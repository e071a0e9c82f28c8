"""Parent and ancestor discovery across providers."""

from __future__ import annotations

from .ancestors import AncestorDiscovery, find_linkage_gaps
from .jobs import (
    CancellationToken,
    DiscoveryEvent,
    DiscoveryJob,
    DiscoveryJobRegistry,
    DiscoveryScope,
    DiscoverySummary,
    EventChannel,
    EventType,
    JobStatus,
)
from .parents import (
    DiscoveredParent,
    DiscoverParentsResult,
    ParentDiscovery,
    SkippedParent,
    SkipReason,
)

__all__ = [
    "AncestorDiscovery",
    "CancellationToken",
    "DiscoverParentsResult",
    "DiscoveredParent",
    "DiscoveryEvent",
    "DiscoveryJob",
    "DiscoveryJobRegistry",
    "DiscoveryScope",
    "DiscoverySummary",
    "EventChannel",
    "EventType",
    "JobStatus",
    "ParentDiscovery",
    "SkipReason",
    "SkippedParent",
    "find_linkage_gaps",
]
