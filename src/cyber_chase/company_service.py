"""Company-side operations: account, tasks and team approval."""

import uuid
from pathlib import Path

from loguru import logger

from .clock import Clock
from .errors import (
    CompanyNotFound,
    ContestNotFound,
    Forbidden,
    InvalidCredentials,
    InvalidInputError,
    NotFoundError,
    TaskNotFound,
)
from .file_store import FileStore
from .models import Company, Task, Team
from .repository import Repositories
from .security import MAX_PASSWORD_BYTES, hash_password, verify_password
from .workflow import TeamWorkflowService

MIN_PASSWORD_LENGTH = 8


class CompanyService:
    """Operations a company performs for its own account and tasks."""

    def __init__(
        self,
        repositories: Repositories,
        file_store: FileStore,
        workflow: TeamWorkflowService,
        clock: Clock | None = None,
    ):
        self.companies = repositories.companies
        self.contests = repositories.contests
        self.tasks = repositories.tasks
        self.file_store = file_store
        self.workflow = workflow
        self.clock = clock or Clock()

    async def authenticate(self, email: str, password: str) -> Company:
        company = await self.companies.get_by_email(email)
        if company is None or not verify_password(password, company.password_hash):
            raise InvalidCredentials("Invalid credentials")
        return company

    async def change_password(self, company_id: str, old_password: str, new_password: str) -> Company:
        company = await self._get_company(company_id)
        if not verify_password(old_password, company.password_hash):
            raise InvalidCredentials("Invalid old password")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise InvalidInputError(
                f"New password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if len(new_password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise InvalidInputError(f"New password must be at most {MAX_PASSWORD_BYTES} bytes")

        company.password_hash = hash_password(new_password)
        company.reset_required = False
        await self.companies.update(company)
        return company

    async def get_location(self, company_id: str) -> str:
        company = await self._get_company(company_id)
        if not company.location:
            raise NotFoundError("Location not set for this company")
        return company.location

    async def create_task(
        self,
        company_id: str,
        contest_id: str,
        question: str,
        correct_answer: str,
        time_limit: int | None = None,
        file: tuple[str, bytes] | None = None,
    ) -> Task:
        """Create a task; ``file`` is an optional ``(filename, content)`` upload."""
        await self._get_company(company_id)
        if await self.contests.get_by_id(contest_id) is None:
            raise ContestNotFound()
        if not question and file is None:
            raise InvalidInputError("Either question text or question file is required")
        if not correct_answer:
            raise InvalidInputError("Correct answer is required")

        task = Task(
            id=str(uuid.uuid4()),
            contest_id=contest_id,
            company_id=company_id,
            question=question,
            correct_answer=correct_answer,
            time_limit=time_limit,
            created_at=self.clock.now(),
        )
        if file is not None:
            filename, content = file
            saved = await self.file_store.save(task.id, filename, content)
            task.question_file = saved.name

        try:
            await self.tasks.create(task)
        except Exception:
            if task.question_file:
                self.file_store.delete(task.id)
            raise

        logger.info("Company {} created task {}", company_id[:8], task.id[:8])
        return task

    async def list_tasks(self, company_id: str) -> list[Task]:
        return await self.tasks.get_by_company(company_id)

    async def update_task(
        self,
        company_id: str,
        task_id: str,
        question: str | None = None,
        correct_answer: str | None = None,
        time_limit: int | None = None,
        file: tuple[str, bytes] | None = None,
    ) -> Task:
        task = await self._get_owned_task(company_id, task_id)
        if question:
            task.question = question
        if correct_answer:
            task.correct_answer = correct_answer
        if time_limit is not None:
            task.time_limit = time_limit
        if file is not None:
            if task.question_file:
                self.file_store.delete(task.id)
            filename, content = file
            saved = await self.file_store.save(task.id, filename, content)
            task.question_file = saved.name

        await self.tasks.update(task)
        return task

    async def delete_task(self, company_id: str, task_id: str) -> None:
        task = await self._get_owned_task(company_id, task_id)
        if task.question_file:
            self.file_store.delete(task.id)
        await self.tasks.delete(task.id)

    async def get_task_file(self, task_id: str) -> Path:
        task = await self.tasks.get_by_id(task_id)
        if task is None:
            raise TaskNotFound()
        if not task.question_file:
            raise NotFoundError("No file associated with this task")
        path = self.file_store.path(task.id, task.question_file)
        if not path.exists():
            raise NotFoundError("File not found")
        return path

    async def list_unassigned_teams(self) -> list[Team]:
        return await self.workflow.list_unassigned_teams()

    async def approve_team(self, company_id: str, team_id: str) -> Team:
        return await self.workflow.approve_team(team_id, company_id)

    async def _get_company(self, company_id: str) -> Company:
        company = await self.companies.get_by_id(company_id)
        if company is None:
            raise CompanyNotFound()
        return company

    async def _get_owned_task(self, company_id: str, task_id: str) -> Task:
        task = await self.tasks.get_by_id(task_id)
        if task is None:
            raise TaskNotFound()
        if task.company_id != company_id:
            raise Forbidden("Not authorized to modify this task")
        return task
