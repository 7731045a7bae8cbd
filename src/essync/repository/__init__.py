"""Repository facade over the unit of work."""

from .base import EntityRepository
from .collection import RepositoryCollection

__all__ = [
    "EntityRepository",
    "RepositoryCollection",
]
