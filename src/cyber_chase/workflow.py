"""Team-facing workflow shared by the bot and any HTTP layer."""

import uuid

from loguru import logger

from .email_service import EmailService
from .errors import (
    AlreadyExists,
    AlreadyLinked,
    CompanyNotFound,
    DeliveryFailed,
    InvalidCredentials,
    NoActiveContest,
    NoAvailableTask,
    NotFoundError,
    NotInContest,
    TaskNotFound,
    TeamNotFound,
)
from .models import Company, Contest, Task, Team, TeamTaskSession
from .repository import Repositories
from .security import generate_temp_password, hash_password, verify_password
from .task_session import TaskSessionEngine


class TeamWorkflowService:
    """Registration, login, contest enrollment and task operations for teams."""

    def __init__(
        self,
        repositories: Repositories,
        email_service: EmailService,
        engine: TaskSessionEngine,
        password_length: int = 10,
    ):
        self.repositories = repositories
        self.teams = repositories.teams
        self.email_service = email_service
        self.engine = engine
        self.password_length = password_length

    async def register(self, email: str, name: str) -> Team:
        """Create a team and mail it a temporary password.

        The team is removed again if the email cannot be delivered.
        """
        if await self.teams.get_by_email(email) is not None:
            raise AlreadyExists("A team with this email already exists")

        password = generate_temp_password(self.password_length)
        team = Team(
            id=str(uuid.uuid4()),
            name=name,
            email=email,
            password_hash=hash_password(password),
        )
        await self.teams.create(team)

        try:
            delivered = await self.email_service.send_temp_password(email, password)
        except Exception as e:
            await self.teams.delete(team.id)
            logger.exception("Registration of {} rolled back: mailer failed", email)
            raise DeliveryFailed() from e

        if not delivered:
            await self.teams.delete(team.id)
            logger.warning("Registration of {} rolled back: email not delivered", email)
            raise DeliveryFailed()

        logger.info("Registered team {} ({})", team.name, team.id[:8])
        return team

    async def authenticate(self, email: str, password: str) -> Team:
        team = await self.teams.get_by_email(email)
        if team is None or not verify_password(password, team.password_hash):
            raise InvalidCredentials()
        return team

    async def link_external_identity(self, email: str, external_id: str) -> Team:
        """Bind a chat identifier to the team with this email."""
        team = await self.teams.get_by_email(email)
        if team is None:
            raise TeamNotFound()

        linked = await self.teams.get_by_external_id(external_id)
        if linked is not None and linked.id != team.id:
            raise AlreadyLinked()

        if team.external_id != external_id:
            team.external_id = external_id
            await self.teams.update(team)
        return team

    async def join_contest(self, team_id: str) -> Contest:
        """Enroll the team in the active contest."""
        team = await self.get_team(team_id)
        contest = await self.repositories.contests.get_active()
        if contest is None:
            raise NoActiveContest()

        team.contest_id = contest.id
        team.current_company_id = None
        await self.teams.update(team)
        logger.info("Team {} joined contest {}", team.id[:8], contest.name)
        return contest

    async def approve_team(self, team_id: str, company_id: str) -> Team:
        """Assign the team to a company. Companies have no capacity limit."""
        team = await self.get_team(team_id)
        company = await self.repositories.companies.get_by_id(company_id)
        if company is None:
            raise CompanyNotFound()

        team.current_company_id = company.id
        await self.teams.update(team)
        company.current_team_id = team.id
        await self.repositories.companies.update(company)
        logger.info("Company {} approved team {}", company.name, team.id[:8])
        return team

    async def next_location(self, team_id: str) -> Company:
        """Company the team should head to next.

        That is the team's current company once approved, otherwise the
        first company with tasks in the contest the team has not attempted.
        """
        team = await self.get_team(team_id)
        if not team.contest_id:
            raise NotInContest()

        company_id = team.current_company_id
        if company_id is None:
            used_ids = set(await self.repositories.sessions.get_used_task_ids(team.id))
            tasks = await self.repositories.tasks.get_by_contest(team.contest_id)
            remaining = [task for task in tasks if task.id not in used_ids]
            if not remaining:
                raise NoAvailableTask()
            company_id = remaining[0].company_id

        company = await self.repositories.companies.get_by_id(company_id)
        if company is None:
            raise CompanyNotFound()
        if not company.location:
            raise NotFoundError("Location not set for this company")
        return company

    async def get_team(self, team_id: str) -> Team:
        team = await self.teams.get_by_id(team_id)
        if team is None:
            raise TeamNotFound()
        return team

    async def get_team_by_email(self, email: str) -> Team:
        team = await self.teams.get_by_email(email)
        if team is None:
            raise TeamNotFound()
        return team

    async def get_task(self, task_id: str) -> Task:
        task = await self.repositories.tasks.get_by_id(task_id)
        if task is None:
            raise TaskNotFound()
        return task

    async def list_unassigned_teams(self) -> list[Team]:
        return await self.teams.get_unassigned()

    async def get_task_for_team(self, team_id: str) -> Task:
        return await self.engine.assign_task(team_id)

    async def submit_answer(self, team_id: str, task_id: str, answer: str) -> bool:
        return await self.engine.submit_answer(team_id, task_id, answer)

    async def get_task_session(self, team_id: str, task_id: str) -> TeamTaskSession:
        return await self.engine.get_session(team_id, task_id)
