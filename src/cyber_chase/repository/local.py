"""Local JSON file repository implementation."""

import json
from pathlib import Path
from typing import Callable, Iterable, Optional

import aiofiles

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


class JsonTable:
    """One JSON array file holding the rows of a single entity."""

    def __init__(self, data_path: str, filename: str):
        self.file_path = Path(data_path) / filename

    async def read_all(self) -> list[dict]:
        """Read all rows from file."""
        if not self.file_path.exists():
            return []
        async with aiofiles.open(self.file_path, "r") as f:
            content = await f.read()
            return json.loads(content) if content else []

    async def write_all(self, data: list[dict]) -> None:
        """Write all rows to file."""
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.file_path, "w") as f:
            await f.write(json.dumps(data, indent=2, default=str))

    async def find(self, predicate: Callable[[dict], bool]) -> Optional[dict]:
        for item in await self.read_all():
            if predicate(item):
                return item
        return None

    async def filter(self, predicate: Callable[[dict], bool]) -> list[dict]:
        return [item for item in await self.read_all() if predicate(item)]

    async def insert(self, row: dict) -> None:
        data = await self.read_all()
        data.append(row)
        await self.write_all(data)

    async def replace(self, row: dict) -> None:
        """Overwrite the row with the same id."""
        data = await self.read_all()
        for i, item in enumerate(data):
            if item["id"] == row["id"]:
                data[i] = row
                break
        else:
            raise KeyError(row["id"])
        await self.write_all(data)

    async def remove(self, id: str) -> None:
        data = await self.read_all()
        await self.write_all([item for item in data if item["id"] != id])


class LocalTeamRepository(TeamRepository):
    """JSON file-based team repository."""

    def __init__(self, data_path: str):
        self.table = JsonTable(data_path, "teams.json")

    async def create(self, team: Team) -> None:
        await self.table.insert(rows.team_to_row(team))

    async def get_by_id(self, id: str) -> Optional[Team]:
        row = await self.table.find(lambda item: item["id"] == id)
        return rows.team_from_row(row) if row else None

    async def get_by_email(self, email: str) -> Optional[Team]:
        row = await self.table.find(lambda item: item["email"] == email)
        return rows.team_from_row(row) if row else None

    async def get_by_external_id(self, external_id: str) -> Optional[Team]:
        row = await self.table.find(lambda item: item.get("external_id") == external_id)
        return rows.team_from_row(row) if row else None

    async def update(self, team: Team) -> None:
        await self.table.replace(rows.team_to_row(team))

    async def delete(self, id: str) -> None:
        await self.table.remove(id)

    async def get_unassigned(self) -> list[Team]:
        data = await self.table.filter(
            lambda item: item.get("contest_id") and not item.get("current_company_id")
        )
        return [rows.team_from_row(item) for item in data]


class LocalContestRepository(ContestRepository):
    """JSON file-based contest repository."""

    def __init__(self, data_path: str):
        self.table = JsonTable(data_path, "contests.json")

    async def create(self, contest: Contest) -> None:
        await self.table.insert(rows.contest_to_row(contest))

    async def get_by_id(self, id: str) -> Optional[Contest]:
        row = await self.table.find(lambda item: item["id"] == id)
        return rows.contest_from_row(row) if row else None

    async def get_active(self) -> Optional[Contest]:
        row = await self.table.find(lambda item: item["status"] == ContestStatus.ACTIVE.value)
        return rows.contest_from_row(row) if row else None

    async def get_all(self) -> list[Contest]:
        return [rows.contest_from_row(item) for item in await self.table.read_all()]

    async def update(self, contest: Contest) -> None:
        await self.table.replace(rows.contest_to_row(contest))

    async def delete(self, id: str) -> None:
        await self.table.remove(id)


class LocalCompanyRepository(CompanyRepository):
    """JSON file-based company repository."""

    def __init__(self, data_path: str):
        self.table = JsonTable(data_path, "companies.json")

    async def create(self, company: Company) -> None:
        await self.table.insert(rows.company_to_row(company))

    async def get_by_id(self, id: str) -> Optional[Company]:
        row = await self.table.find(lambda item: item["id"] == id)
        return rows.company_from_row(row) if row else None

    async def get_by_email(self, email: str) -> Optional[Company]:
        row = await self.table.find(lambda item: item["email"] == email)
        return rows.company_from_row(row) if row else None

    async def get_by_name(self, name: str) -> Optional[Company]:
        row = await self.table.find(lambda item: item["name"] == name)
        return rows.company_from_row(row) if row else None

    async def get_all(self) -> list[Company]:
        return [rows.company_from_row(item) for item in await self.table.read_all()]

    async def update(self, company: Company) -> None:
        await self.table.replace(rows.company_to_row(company))

    async def delete(self, id: str) -> None:
        await self.table.remove(id)


class LocalTaskRepository(TaskRepository):
    """JSON file-based task repository."""

    def __init__(self, data_path: str):
        self.table = JsonTable(data_path, "tasks.json")

    async def create(self, task: Task) -> None:
        await self.table.insert(rows.task_to_row(task))

    async def get_by_id(self, id: str) -> Optional[Task]:
        row = await self.table.find(lambda item: item["id"] == id)
        return rows.task_from_row(row) if row else None

    async def find_available(
        self, contest_id: str, company_id: str, exclude_ids: Iterable[str]
    ) -> Optional[Task]:
        excluded = set(exclude_ids)
        row = await self.table.find(
            lambda item: item["contest_id"] == contest_id
            and item["company_id"] == company_id
            and item["id"] not in excluded
        )
        return rows.task_from_row(row) if row else None

    async def get_by_company(self, company_id: str) -> list[Task]:
        data = await self.table.filter(lambda item: item["company_id"] == company_id)
        return [rows.task_from_row(item) for item in data]

    async def get_by_contest(self, contest_id: str) -> list[Task]:
        data = await self.table.filter(lambda item: item["contest_id"] == contest_id)
        return [rows.task_from_row(item) for item in data]

    async def update(self, task: Task) -> None:
        await self.table.replace(rows.task_to_row(task))

    async def delete(self, id: str) -> None:
        await self.table.remove(id)


class LocalTaskSessionRepository(TaskSessionRepository):
    """JSON file-based task session repository."""

    def __init__(self, data_path: str):
        self.table = JsonTable(data_path, "team_task_sessions.json")

    async def create(self, session: TeamTaskSession) -> None:
        await self.table.insert(rows.session_to_row(session))

    async def get(self, team_id: str, task_id: str) -> Optional[TeamTaskSession]:
        row = await self.table.find(
            lambda item: item["team_id"] == team_id and item["task_id"] == task_id
        )
        return rows.session_from_row(row) if row else None

    async def get_used_task_ids(self, team_id: str) -> list[str]:
        data = await self.table.filter(lambda item: item["team_id"] == team_id)
        return [item["task_id"] for item in data]

    async def update(self, session: TeamTaskSession) -> None:
        await self.table.replace(rows.session_to_row(session))


class LocalAnswerRepository(AnswerRepository):
    """JSON file-based answer audit repository."""

    def __init__(self, data_path: str):
        self.table = JsonTable(data_path, "team_answers.json")

    async def save(self, answer: TeamAnswer) -> None:
        await self.table.insert(rows.answer_to_row(answer))

    async def get_by_team(self, team_id: str) -> list[TeamAnswer]:
        data = await self.table.filter(lambda item: item["team_id"] == team_id)
        return [rows.answer_from_row(item) for item in data]
