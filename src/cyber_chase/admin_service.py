"""Organizer operations: contest lifecycle and company accounts."""

import asyncio
import secrets
import uuid

from loguru import logger

from .clock import Clock
from .email_service import EmailService
from .errors import (
    AlreadyExists,
    CompanyNotFound,
    ContestNotFound,
    ContestStateError,
    DeliveryFailed,
    InvalidCredentials,
)
from .models import Company, Contest, ContestStatus
from .repository import Repositories
from .security import generate_temp_password, hash_password


class ContestAdminService:
    """Contests and company accounts managed by the organizer."""

    def __init__(
        self,
        repositories: Repositories,
        email_service: EmailService,
        clock: Clock | None = None,
        password_length: int = 12,
        admin_username: str = "admin",
        admin_password: str = "",
    ):
        self.contests = repositories.contests
        self.companies = repositories.companies
        self.email_service = email_service
        self.clock = clock or Clock()
        self.password_length = password_length
        self.admin_username = admin_username
        self.admin_password = admin_password
        # Only one contest may become active at a time.
        self._activation_lock = asyncio.Lock()

    def authenticate(self, username: str, password: str) -> None:
        """Check the organizer credentials from settings."""
        if not self.admin_password:
            raise InvalidCredentials("Admin sign-in is disabled")
        valid = secrets.compare_digest(
            username.encode("utf-8"), self.admin_username.encode("utf-8")
        ) and secrets.compare_digest(password.encode("utf-8"), self.admin_password.encode("utf-8"))
        if not valid:
            raise InvalidCredentials("Invalid credentials")
        logger.info("Organizer signed in")

    async def create_contest(self, name: str) -> Contest:
        contest = Contest(id=str(uuid.uuid4()), name=name, created_at=self.clock.now())
        await self.contests.create(contest)
        logger.info("Created contest {}", name)
        return contest

    async def list_contests(self) -> list[Contest]:
        return await self.contests.get_all()

    async def get_contest(self, contest_id: str) -> Contest:
        contest = await self.contests.get_by_id(contest_id)
        if contest is None:
            raise ContestNotFound()
        return contest

    async def rename_contest(self, contest_id: str, name: str) -> Contest:
        contest = await self.get_contest(contest_id)
        if name:
            contest.name = name
            await self.contests.update(contest)
        return contest

    async def delete_contest(self, contest_id: str) -> None:
        await self.get_contest(contest_id)
        await self.contests.delete(contest_id)

    async def start_contest(self, contest_id: str) -> Contest:
        async with self._activation_lock:
            contest = await self.get_contest(contest_id)
            if contest.status == ContestStatus.ACTIVE:
                raise ContestStateError("Contest is already active")

            active = await self.contests.get_active()
            if active is not None:
                raise ContestStateError(f"Contest '{active.name}' is already active")

            contest.status = ContestStatus.ACTIVE
            contest.start_date = self.clock.now()
            await self.contests.update(contest)
            logger.info("Contest {} started", contest.name)
            return contest

    async def end_contest(self, contest_id: str) -> Contest:
        async with self._activation_lock:
            contest = await self.get_contest(contest_id)
            if contest.status != ContestStatus.ACTIVE:
                raise ContestStateError("Contest is not active")

            contest.status = ContestStatus.COMPLETED
            contest.end_date = self.clock.now()
            await self.contests.update(contest)
            logger.info("Contest {} ended", contest.name)
            return contest

    async def create_company(self, name: str, email: str, location: str = "") -> Company:
        """Create a company account and mail it a temporary password.

        A company whose email could not be delivered is kept; the organizer
        can issue a new password with ``reset_company_password``.
        """
        if await self.companies.get_by_name(name) is not None:
            raise AlreadyExists("Company already exists")
        if await self.companies.get_by_email(email) is not None:
            raise AlreadyExists("Company already exists")

        password = generate_temp_password(self.password_length)
        company = Company(
            id=str(uuid.uuid4()),
            name=name,
            email=email,
            password_hash=hash_password(password),
            reset_required=True,
            location=location,
            created_at=self.clock.now(),
        )
        await self.companies.create(company)
        logger.info("Created company {}", name)

        if not await self.email_service.send_temp_password(email, password):
            raise DeliveryFailed()
        return company

    async def list_companies(self) -> list[Company]:
        return await self.companies.get_all()

    async def get_company(self, company_id: str) -> Company:
        company = await self.companies.get_by_id(company_id)
        if company is None:
            raise CompanyNotFound()
        return company

    async def update_company(
        self,
        company_id: str,
        name: str | None = None,
        email: str | None = None,
        location: str | None = None,
    ) -> Company:
        company = await self.get_company(company_id)
        if name:
            company.name = name
        if email:
            company.email = email
        if location:
            company.location = location
        await self.companies.update(company)
        return company

    async def reset_company_password(self, company_id: str) -> Company:
        company = await self.get_company(company_id)
        password = generate_temp_password(self.password_length)

        if not await self.email_service.send_temp_password(company.email, password):
            raise DeliveryFailed()

        company.password_hash = hash_password(password)
        company.reset_required = True
        await self.companies.update(company)
        logger.info("Password reset for company {}", company.name)
        return company

    async def delete_company(self, company_id: str) -> None:
        await self.get_company(company_id)
        await self.companies.delete(company_id)
