"""Repository layer for data access."""

from .base import (
    AnswerRepository,
    CompanyRepository,
    ContestRepository,
    TaskRepository,
    TaskSessionRepository,
    TeamRepository,
)
from .factory import Repositories, create_local_repositories, create_repositories

__all__ = [
    "AnswerRepository",
    "CompanyRepository",
    "ContestRepository",
    "TaskRepository",
    "TaskSessionRepository",
    "TeamRepository",
    "Repositories",
    "create_local_repositories",
    "create_repositories",
]
