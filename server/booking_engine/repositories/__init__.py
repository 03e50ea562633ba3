"""Repository interfaces and their SQLAlchemy and in-memory implementations."""

from .base import AbstractUnitOfWork
from .memory import InMemoryStore, InMemoryUnitOfWork
from .sql import SqlAlchemyUnitOfWork

__all__ = [
    "AbstractUnitOfWork",
    "InMemoryStore",
    "InMemoryUnitOfWork",
    "SqlAlchemyUnitOfWork",
]
