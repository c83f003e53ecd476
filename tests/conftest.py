import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from cyber_chase.admin_service import ContestAdminService
from cyber_chase.clock import Clock
from cyber_chase.company_service import CompanyService
from cyber_chase.control import ControlHandler
from cyber_chase.file_store import FileStore
from cyber_chase.repository import create_local_repositories
from cyber_chase.session_store import InMemorySessionStore
from cyber_chase.state_machine import ConversationStateMachine
from cyber_chase.task_session import TaskSessionEngine
from cyber_chase.workflow import TeamWorkflowService


ADMIN_PASSWORD = "organizer-pass"


class FrozenClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeEmailService:
    """Records outgoing passwords instead of talking to SMTP."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    async def send_temp_password(self, to_email: str, password: str) -> bool:
        if self.fail:
            return False
        self.sent.append((to_email, password))
        return True

    def password_for(self, email: str) -> str:
        return [password for to, password in self.sent if to == email][-1]


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def repos(tmp_path):
    return create_local_repositories(str(tmp_path / "data"))


@pytest.fixture
def mailer():
    return FakeEmailService()


@pytest.fixture
def file_store(tmp_path):
    return FileStore(str(tmp_path / "uploads"))


@pytest.fixture
def engine(repos, clock):
    return TaskSessionEngine(repos, clock)


@pytest.fixture
def workflow(repos, mailer, engine):
    return TeamWorkflowService(repos, mailer, engine)


@pytest.fixture
def admin(repos, mailer, clock):
    return ContestAdminService(repos, mailer, clock, admin_password=ADMIN_PASSWORD)


@pytest.fixture
def company_service(repos, file_store, workflow, clock):
    return CompanyService(repos, file_store, workflow, clock)


@pytest.fixture
def control(admin, company_service):
    return ControlHandler(admin, company_service)


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def state_machine(workflow, session_store, file_store):
    return ConversationStateMachine(
        workflow, session_store, file_store, approval_attempts=3, approval_interval=0
    )


@pytest.fixture
def arena(admin, company_service, workflow):
    """An active contest with one company, two tasks and an approved team."""

    async def setup():
        contest = await admin.create_contest("Spring Chase")
        await admin.start_contest(contest.id)
        company = await admin.create_company(
            "Acme", "acme@example.com", "https://maps.example.com/acme"
        )
        first = await company_service.create_task(
            company.id, contest.id, "What is 2 + 2?", "4", time_limit=5
        )
        second = await company_service.create_task(
            company.id, contest.id, "Capital of France?", "Paris"
        )
        team = await workflow.register("red@example.com", "Red Team")
        await workflow.join_contest(team.id)
        await workflow.approve_team(team.id, company.id)
        return SimpleNamespace(contest=contest, company=company, tasks=[first, second], team=team)

    return asyncio.run(setup())
