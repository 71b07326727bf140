"""Composition root for the lifecycle components."""

from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Final, Self

from reqctl.lifecycle._baseline_manager import BaselineManager
from reqctl.lifecycle._change_manager import ChangeControlEngine
from reqctl.lifecycle._concurrency import LockRegistry
from reqctl.lifecycle._history_manager import HistoryLedger
from reqctl.lifecycle._ids import IdentifierAllocator
from reqctl.lifecycle._requirement_manager import RequirementStore
from reqctl.lifecycle._trace_manager import TraceabilityIndex

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from reqctl.config import Config
    from reqctl.repository import RepositoryProtocol

__all__ = ["RequirementsEngine"]


class RequirementsEngine:
    """Wires the lifecycle components around one repository.

    All components share a single lock registry, so per-entity locks taken by
    one component also serialize the others.

    Attributes:
        repository: Project storage.
        history: Audit trail ledger.
        ids: Display identifier allocator.
        requirements: Requirement store.
        baselines: Baseline manager.
        change_requests: Change-control engine.
        traceability: Traceability index.

    Example:
        >>> engine = RequirementsEngine.in_memory()
        >>> req = engine.requirements.create_requirement(
        ...     "demo", title="Login", kind="functional", priority="high",
        ...     owner_id="alice", actor="alice",
        ... )
        >>> req.display_id
        'REQ-0001'
    """

    __slots__: Final = (
        "baselines",
        "change_requests",
        "history",
        "ids",
        "repository",
        "requirements",
        "traceability",
    )

    repository: "RepositoryProtocol"  # noqa: UP037
    history: HistoryLedger
    ids: IdentifierAllocator
    requirements: RequirementStore
    baselines: BaselineManager
    change_requests: ChangeControlEngine
    traceability: TraceabilityIndex

    def __init__(
        self,
        repository: "RepositoryProtocol",  # noqa: UP037
        *,
        config: "Config | None" = None,  # noqa: UP037
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize the engine.

        Args:
            repository: Project storage.
            config: Numbering and retry settings; defaults apply when None.
            logger: Optional structured logger shared by all components.
        """
        numbering = config.numbering if config is not None else None
        max_retries = config.concurrency.max_retries if config is not None else 3
        locks = LockRegistry()

        self.repository = repository
        self.history = HistoryLedger(repository)
        self.ids = IdentifierAllocator(repository, locks, numbering=numbering)
        self.requirements = RequirementStore(
            repository,
            self.history,
            self.ids,
            locks,
            max_retries=max_retries,
            logger=logger,
        )
        self.baselines = BaselineManager(
            repository,
            self.requirements,
            self.history,
            locks,
            max_retries=max_retries,
            logger=logger,
        )
        self.change_requests = ChangeControlEngine(
            repository,
            self.requirements,
            self.ids,
            self.history,
            locks,
            max_retries=max_retries,
            logger=logger,
        )
        self.traceability = TraceabilityIndex(
            repository,
            self.requirements,
            self.history,
            locks,
            max_retries=max_retries,
            logger=logger,
        )

    @classmethod
    def in_memory(
        cls,
        *,
        config: "Config | None" = None,  # noqa: UP037
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> Self:
        """Create an engine over a fresh in-memory repository."""
        from reqctl.repository import InMemoryRepository  # noqa: PLC0415

        return cls(InMemoryRepository(), config=config, logger=logger)

    @classmethod
    def from_config(
        cls,
        config: "Config",  # noqa: UP037
        *,
        root: Path | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> Self:
        """Create an engine over JSON project files.

        Args:
            config: Loaded configuration; ``storage.path`` locates the files.
            root: Overrides the configured storage directory.
            logger: Optional structured logger.
        """
        from reqctl.repository import JsonFileRepository  # noqa: PLC0415

        directory = root if root is not None else Path(config.storage.path)
        return cls(JsonFileRepository(directory), config=config, logger=logger)

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release the repository's resources."""
        self.repository.close()
