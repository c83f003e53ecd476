"""Repository factory."""

from dataclasses import dataclass

from ..config.settings import Settings
from .base import (
    AnswerRepository,
    CompanyRepository,
    ContestRepository,
    TaskRepository,
    TaskSessionRepository,
    TeamRepository,
)
from .local import (
    LocalAnswerRepository,
    LocalCompanyRepository,
    LocalContestRepository,
    LocalTaskRepository,
    LocalTaskSessionRepository,
    LocalTeamRepository,
)
from .supabase import (
    SupabaseAnswerRepository,
    SupabaseClientManager,
    SupabaseCompanyRepository,
    SupabaseContestRepository,
    SupabaseTaskRepository,
    SupabaseTaskSessionRepository,
    SupabaseTeamRepository,
)


@dataclass
class Repositories:
    """All repositories used by the services."""
    teams: TeamRepository
    contests: ContestRepository
    companies: CompanyRepository
    tasks: TaskRepository
    sessions: TaskSessionRepository
    answers: AnswerRepository


def create_local_repositories(data_path: str) -> Repositories:
    """Create JSON file repositories rooted at ``data_path``."""
    return Repositories(
        teams=LocalTeamRepository(data_path),
        contests=LocalContestRepository(data_path),
        companies=LocalCompanyRepository(data_path),
        tasks=LocalTaskRepository(data_path),
        sessions=LocalTaskSessionRepository(data_path),
        answers=LocalAnswerRepository(data_path),
    )


def create_repositories(settings: Settings) -> Repositories:
    """Create repositories for the configured storage backend.

    Args:
        settings: Application settings

    Returns:
        Repositories bundle

    Raises:
        ValueError: If the backend is unknown or Supabase is not configured
    """
    backend = settings.storage.backend
    if backend == "local":
        return create_local_repositories(settings.storage.data_path)

    if backend != "supabase":
        raise ValueError(f"Unknown storage backend: {backend}")

    if not settings.supabase.is_configured:
        raise ValueError(
            "SUPABASE_URL and SUPABASE_KEY must be set in environment"
        )

    client_manager = SupabaseClientManager(
        settings.supabase.url,
        settings.supabase.key,
    )
    return Repositories(
        teams=SupabaseTeamRepository(client_manager),
        contests=SupabaseContestRepository(client_manager),
        companies=SupabaseCompanyRepository(client_manager),
        tasks=SupabaseTaskRepository(client_manager),
        sessions=SupabaseTaskSessionRepository(client_manager),
        answers=SupabaseAnswerRepository(client_manager),
    )
