"""Abstract repository interfaces."""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from ..models import Company, Contest, Task, Team, TeamAnswer, TeamTaskSession


class TeamRepository(ABC):
    """Abstract interface for team storage."""

    @abstractmethod
    async def create(self, team: Team) -> None:
        """Create a new team."""
        pass

    @abstractmethod
    async def get_by_id(self, id: str) -> Optional[Team]:
        """Get a team by ID."""
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Team]:
        """Get a team by its login email."""
        pass

    @abstractmethod
    async def get_by_external_id(self, external_id: str) -> Optional[Team]:
        """Get the team linked to a chat identifier."""
        pass

    @abstractmethod
    async def update(self, team: Team) -> None:
        """Persist all fields of an existing team."""
        pass

    @abstractmethod
    async def delete(self, id: str) -> None:
        """Delete a team."""
        pass

    @abstractmethod
    async def get_unassigned(self) -> list[Team]:
        """Get teams that joined a contest but have no company yet."""
        pass


class ContestRepository(ABC):
    """Abstract interface for contest storage."""

    @abstractmethod
    async def create(self, contest: Contest) -> None:
        pass

    @abstractmethod
    async def get_by_id(self, id: str) -> Optional[Contest]:
        pass

    @abstractmethod
    async def get_active(self) -> Optional[Contest]:
        """Get the contest whose status is active, if any."""
        pass

    @abstractmethod
    async def get_all(self) -> list[Contest]:
        pass

    @abstractmethod
    async def update(self, contest: Contest) -> None:
        pass

    @abstractmethod
    async def delete(self, id: str) -> None:
        pass


class CompanyRepository(ABC):
    """Abstract interface for company storage."""

    @abstractmethod
    async def create(self, company: Company) -> None:
        pass

    @abstractmethod
    async def get_by_id(self, id: str) -> Optional[Company]:
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Company]:
        pass

    @abstractmethod
    async def get_by_name(self, name: str) -> Optional[Company]:
        pass

    @abstractmethod
    async def get_all(self) -> list[Company]:
        pass

    @abstractmethod
    async def update(self, company: Company) -> None:
        pass

    @abstractmethod
    async def delete(self, id: str) -> None:
        pass


class TaskRepository(ABC):
    """Abstract interface for task storage."""

    @abstractmethod
    async def create(self, task: Task) -> None:
        pass

    @abstractmethod
    async def get_by_id(self, id: str) -> Optional[Task]:
        pass

    @abstractmethod
    async def find_available(
        self, contest_id: str, company_id: str, exclude_ids: Iterable[str]
    ) -> Optional[Task]:
        """Get the oldest task of a contest and company not in ``exclude_ids``."""
        pass

    @abstractmethod
    async def get_by_company(self, company_id: str) -> list[Task]:
        pass

    @abstractmethod
    async def get_by_contest(self, contest_id: str) -> list[Task]:
        pass

    @abstractmethod
    async def update(self, task: Task) -> None:
        pass

    @abstractmethod
    async def delete(self, id: str) -> None:
        pass


class TaskSessionRepository(ABC):
    """Abstract interface for team task sessions."""

    @abstractmethod
    async def create(self, session: TeamTaskSession) -> None:
        pass

    @abstractmethod
    async def get(self, team_id: str, task_id: str) -> Optional[TeamTaskSession]:
        """Get the session of a team on a task."""
        pass

    @abstractmethod
    async def get_used_task_ids(self, team_id: str) -> list[str]:
        """Get the ids of every task the team has been handed."""
        pass

    @abstractmethod
    async def update(self, session: TeamTaskSession) -> None:
        pass


class AnswerRepository(ABC):
    """Abstract interface for the answer audit trail."""

    @abstractmethod
    async def save(self, answer: TeamAnswer) -> None:
        """Append an answer record."""
        pass

    @abstractmethod
    async def get_by_team(self, team_id: str) -> list[TeamAnswer]:
        pass
