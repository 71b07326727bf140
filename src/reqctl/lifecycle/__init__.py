"""Requirements lifecycle and change-control engine.

This package provides the RequirementsEngine composition root and the
components it wires together: the requirement store, baseline manager,
change-control engine, traceability index and history ledger, along with the
data models they exchange.
"""

from reqctl.lifecycle._baseline_manager import (
    BaselineManager,
    diff_snapshots,
    snapshot_of,
)
from reqctl.lifecycle._change_manager import ChangeControlEngine
from reqctl.lifecycle._concurrency import (
    CancellationToken,
    LockRegistry,
    retry_on_conflict,
)
from reqctl.lifecycle._engine import RequirementsEngine
from reqctl.lifecycle._hierarchy import HierarchyNode, RequirementHierarchy
from reqctl.lifecycle._history_manager import ALLOWED_ACTIONS, HistoryLedger
from reqctl.lifecycle._ids import IdentifierAllocator, parse_display_id
from reqctl.lifecycle._lazy import LazySequence
from reqctl.lifecycle._models import (
    ArtifactType,
    BaselineDiff,
    ChangeRequest,
    ChangeRequestStatus,
    CoverageReport,
    EntityType,
    FieldChange,
    HistoryAction,
    HistoryEntry,
    IdentifierKind,
    ImpactAnalysis,
    ImpactLevel,
    KindCoverage,
    Priority,
    Requirement,
    RequirementBaseline,
    RequirementKind,
    RequirementSnapshot,
    RequirementStatus,
    TraceabilityMatrix,
    TraceabilityRow,
    TraceLink,
)
from reqctl.lifecycle._requirement_manager import RequirementStore
from reqctl.lifecycle._snapshot import ProjectSnapshot
from reqctl.lifecycle._trace_manager import TraceabilityIndex, coverage_percent
from reqctl.lifecycle._transitions import (
    CHANGE_REQUEST_TRANSITIONS,
    REQUIREMENT_TRANSITIONS,
    allowed_change_request_targets,
    allowed_requirement_targets,
)
from reqctl.lifecycle._unit_of_work import UnitOfWork

__all__ = [
    "ALLOWED_ACTIONS",
    "CHANGE_REQUEST_TRANSITIONS",
    "REQUIREMENT_TRANSITIONS",
    "ArtifactType",
    "BaselineDiff",
    "BaselineManager",
    "CancellationToken",
    "ChangeControlEngine",
    "ChangeRequest",
    "ChangeRequestStatus",
    "CoverageReport",
    "EntityType",
    "FieldChange",
    "HierarchyNode",
    "HistoryAction",
    "HistoryEntry",
    "HistoryLedger",
    "IdentifierAllocator",
    "IdentifierKind",
    "ImpactAnalysis",
    "ImpactLevel",
    "KindCoverage",
    "LazySequence",
    "LockRegistry",
    "Priority",
    "ProjectSnapshot",
    "Requirement",
    "RequirementBaseline",
    "RequirementHierarchy",
    "RequirementKind",
    "RequirementSnapshot",
    "RequirementStatus",
    "RequirementStore",
    "RequirementsEngine",
    "TraceLink",
    "TraceabilityIndex",
    "TraceabilityMatrix",
    "TraceabilityRow",
    "UnitOfWork",
    "allowed_change_request_targets",
    "allowed_requirement_targets",
    "coverage_percent",
    "diff_snapshots",
    "parse_display_id",
    "retry_on_conflict",
    "snapshot_of",
]
