"""Supabase repository implementation."""

from typing import Iterable, Optional

from supabase import Client, create_client

from ..models import Company, Contest, ContestStatus, Task, Team, TeamAnswer, TeamTaskSession
from . import rows
from .base import (
    AnswerRepository,
    CompanyRepository,
    ContestRepository,
    TaskRepository,
    TaskSessionRepository,
    TeamRepository,
)


class SupabaseClientManager:
    """Manages Supabase client lifecycle."""

    def __init__(self, url: str, key: str):
        self.url = url
        self.key = key
        self._client: Optional[Client] = None

    def get_client(self) -> Client:
        """Get or create Supabase client."""
        if self._client is None:
            self._client = create_client(self.url, self.key)
        return self._client


class SupabaseTable:
    """Row access to one Supabase table."""

    def __init__(self, client_manager: SupabaseClientManager, name: str):
        self.client_manager = client_manager
        self.name = name

    def query(self):
        return self.client_manager.get_client().table(self.name)

    def first(self, **filters) -> Optional[dict]:
        query = self.query().select("*")
        for column, value in filters.items():
            query = query.eq(column, value)
        response = query.order("created_at").limit(1).execute()
        return response.data[0] if response.data else None

    def insert(self, row: dict) -> None:
        self.query().insert(row).execute()

    def update(self, row: dict) -> None:
        self.query().update(row).eq("id", row["id"]).execute()

    def delete(self, id: str) -> None:
        self.query().delete().eq("id", id).execute()


class SupabaseTeamRepository(TeamRepository):
    """Supabase-backed team repository."""

    def __init__(self, client_manager: SupabaseClientManager):
        self.table = SupabaseTable(client_manager, "teams")

    async def create(self, team: Team) -> None:
        self.table.insert(rows.team_to_row(team))

    async def get_by_id(self, id: str) -> Optional[Team]:
        row = self.table.first(id=id)
        return rows.team_from_row(row) if row else None

    async def get_by_email(self, email: str) -> Optional[Team]:
        row = self.table.first(email=email)
        return rows.team_from_row(row) if row else None

    async def get_by_external_id(self, external_id: str) -> Optional[Team]:
        row = self.table.first(external_id=external_id)
        return rows.team_from_row(row) if row else None

    async def update(self, team: Team) -> None:
        self.table.update(rows.team_to_row(team))

    async def delete(self, id: str) -> None:
        self.table.delete(id)

    async def get_unassigned(self) -> list[Team]:
        response = (
            self.table.query()
            .select("*")
            .not_.is_("contest_id", "null")
            .is_("current_company_id", "null")
            .order("created_at")
            .execute()
        )
        return [rows.team_from_row(item) for item in response.data]


class SupabaseContestRepository(ContestRepository):
    """Supabase-backed contest repository."""

    def __init__(self, client_manager: SupabaseClientManager):
        self.table = SupabaseTable(client_manager, "contests")

    async def create(self, contest: Contest) -> None:
        self.table.insert(rows.contest_to_row(contest))

    async def get_by_id(self, id: str) -> Optional[Contest]:
        row = self.table.first(id=id)
        return rows.contest_from_row(row) if row else None

    async def get_active(self) -> Optional[Contest]:
        row = self.table.first(status=ContestStatus.ACTIVE.value)
        return rows.contest_from_row(row) if row else None

    async def get_all(self) -> list[Contest]:
        response = self.table.query().select("*").order("created_at", desc=True).execute()
        return [rows.contest_from_row(item) for item in response.data]

    async def update(self, contest: Contest) -> None:
        self.table.update(rows.contest_to_row(contest))

    async def delete(self, id: str) -> None:
        self.table.delete(id)


class SupabaseCompanyRepository(CompanyRepository):
    """Supabase-backed company repository."""

    def __init__(self, client_manager: SupabaseClientManager):
        self.table = SupabaseTable(client_manager, "companies")

    async def create(self, company: Company) -> None:
        self.table.insert(rows.company_to_row(company))

    async def get_by_id(self, id: str) -> Optional[Company]:
        row = self.table.first(id=id)
        return rows.company_from_row(row) if row else None

    async def get_by_email(self, email: str) -> Optional[Company]:
        row = self.table.first(email=email)
        return rows.company_from_row(row) if row else None

    async def get_by_name(self, name: str) -> Optional[Company]:
        row = self.table.first(name=name)
        return rows.company_from_row(row) if row else None

    async def get_all(self) -> list[Company]:
        response = self.table.query().select("*").order("created_at").execute()
        return [rows.company_from_row(item) for item in response.data]

    async def update(self, company: Company) -> None:
        self.table.update(rows.company_to_row(company))

    async def delete(self, id: str) -> None:
        self.table.delete(id)


class SupabaseTaskRepository(TaskRepository):
    """Supabase-backed task repository."""

    def __init__(self, client_manager: SupabaseClientManager):
        self.table = SupabaseTable(client_manager, "tasks")

    async def create(self, task: Task) -> None:
        self.table.insert(rows.task_to_row(task))

    async def get_by_id(self, id: str) -> Optional[Task]:
        row = self.table.first(id=id)
        return rows.task_from_row(row) if row else None

    async def find_available(
        self, contest_id: str, company_id: str, exclude_ids: Iterable[str]
    ) -> Optional[Task]:
        query = (
            self.table.query()
            .select("*")
            .eq("contest_id", contest_id)
            .eq("company_id", company_id)
        )
        excluded = list(exclude_ids)
        if excluded:
            query = query.not_.in_("id", excluded)
        response = query.order("created_at").limit(1).execute()
        return rows.task_from_row(response.data[0]) if response.data else None

    async def get_by_company(self, company_id: str) -> list[Task]:
        response = (
            self.table.query().select("*").eq("company_id", company_id).order("created_at").execute()
        )
        return [rows.task_from_row(item) for item in response.data]

    async def get_by_contest(self, contest_id: str) -> list[Task]:
        response = (
            self.table.query().select("*").eq("contest_id", contest_id).order("created_at").execute()
        )
        return [rows.task_from_row(item) for item in response.data]

    async def update(self, task: Task) -> None:
        self.table.update(rows.task_to_row(task))

    async def delete(self, id: str) -> None:
        self.table.delete(id)


class SupabaseTaskSessionRepository(TaskSessionRepository):
    """Supabase-backed task session repository."""

    def __init__(self, client_manager: SupabaseClientManager):
        self.table = SupabaseTable(client_manager, "team_task_sessions")

    async def create(self, session: TeamTaskSession) -> None:
        self.table.insert(rows.session_to_row(session))

    async def get(self, team_id: str, task_id: str) -> Optional[TeamTaskSession]:
        response = (
            self.table.query()
            .select("*")
            .eq("team_id", team_id)
            .eq("task_id", task_id)
            .order("start_time", desc=True)
            .limit(1)
            .execute()
        )
        return rows.session_from_row(response.data[0]) if response.data else None

    async def get_used_task_ids(self, team_id: str) -> list[str]:
        response = self.table.query().select("task_id").eq("team_id", team_id).execute()
        return [item["task_id"] for item in response.data]

    async def update(self, session: TeamTaskSession) -> None:
        self.table.update(rows.session_to_row(session))


class SupabaseAnswerRepository(AnswerRepository):
    """Supabase-backed answer audit repository."""

    def __init__(self, client_manager: SupabaseClientManager):
        self.table = SupabaseTable(client_manager, "team_answers")

    async def save(self, answer: TeamAnswer) -> None:
        self.table.insert(rows.answer_to_row(answer))

    async def get_by_team(self, team_id: str) -> list[TeamAnswer]:
        response = (
            self.table.query().select("*").eq("team_id", team_id).order("created_at").execute()
        )
        return [rows.answer_from_row(item) for item in response.data]
