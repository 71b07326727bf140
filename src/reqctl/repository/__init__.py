"""Persistence for the lifecycle engine.

The engine talks to storage through RepositoryProtocol. Two implementations
ship with the package: InMemoryRepository and JsonFileRepository.
"""

from reqctl.repository._json import JsonFileRepository
from reqctl.repository._memory import InMemoryRepository
from reqctl.repository._protocol import RepositoryProtocol
from reqctl.repository._state import ProjectState

__all__ = [
    "InMemoryRepository",
    "JsonFileRepository",
    "ProjectState",
    "RepositoryProtocol",
]
