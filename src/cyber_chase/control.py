"""Organizer and company requests carried over the bot WebSocket.

A control frame names an ``action`` with optional ``params`` and
``request_id``:

    {"request_id": "1", "action": "company.login",
     "params": {"email": "acme@example.com", "password": "..."}}
    {"request_id": "2", "action": "team.approve", "params": {"team_id": "..."}}

A connection signs in once with ``admin.login`` or ``company.login``; every
later frame on it acts with that role. Responses echo ``request_id``:

    {"request_id": "2", "ok": true, "result": {...}}
    {"request_id": "2", "ok": false, "error": "Team not found", "kind": "not_found"}
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Optional

import aiofiles
from loguru import logger

from .admin_service import ContestAdminService
from .company_service import CompanyService
from .errors import (
    ConflictError,
    CyberChaseError,
    ExternalDependencyError,
    Forbidden,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from .repository import rows

ADMIN = "admin"
COMPANY = "company"

ERROR_KINDS = [
    (NotFoundError, "not_found"),
    (ConflictError, "conflict"),
    (InvalidStateError, "invalid_state"),
    (UnauthorizedError, "unauthorized"),
    (ExternalDependencyError, "external_dependency"),
    (InvalidInputError, "invalid_input"),
]


@dataclass
class Principal:
    """Who a control connection is signed in as."""
    role: Optional[str] = None
    company_id: Optional[str] = None


def error_kind(error: CyberChaseError) -> str:
    for error_type, kind in ERROR_KINDS:
        if isinstance(error, error_type):
            return kind
    return "error"


def _param(params: dict, name: str) -> Any:
    value = params.get(name)
    if value is None:
        raise InvalidInputError(f"Missing parameter: {name}")
    return value


def _public(row: dict) -> dict:
    row.pop("password_hash", None)
    return row


def _upload(params: dict) -> tuple[str, bytes] | None:
    """Decode an optional ``{"filename", "content": <base64>}`` upload."""
    file = params.get("file")
    if file is None:
        return None
    if not isinstance(file, dict):
        raise InvalidInputError("File must be an object with filename and content")
    try:
        content = base64.b64decode(_param(file, "content"), validate=True)
    except (binascii.Error, TypeError) as e:
        raise InvalidInputError("File content must be base64") from e
    return _param(file, "filename"), content


class ControlHandler:
    """Runs organizer and company actions for signed-in connections."""

    def __init__(self, admin_service: ContestAdminService, company_service: CompanyService):
        self.admin = admin_service
        self.companies = company_service

    async def handle(self, principal: Principal, action: str, params: dict) -> dict:
        """Run one action and build the response body."""
        try:
            result = await self._dispatch(principal, action, params)
        except CyberChaseError as e:
            logger.debug("Control action {} failed: {}", action, e)
            return {"ok": False, "error": str(e), "kind": error_kind(e)}
        return {"ok": True, "result": result}

    async def _dispatch(self, principal: Principal, action: str, params: dict) -> Any:
        match action:
            case "admin.login":
                self.admin.authenticate(_param(params, "username"), _param(params, "password"))
                principal.role, principal.company_id = ADMIN, None
                return {"role": ADMIN}
            case "company.login":
                company = await self.companies.authenticate(
                    _param(params, "email"), _param(params, "password")
                )
                principal.role, principal.company_id = COMPANY, company.id
                return _public(rows.company_to_row(company))
            case "logout":
                principal.role, principal.company_id = None, None
                return None

        if principal.role == ADMIN:
            return await self._admin_action(action, params)
        if principal.role == COMPANY:
            return await self._company_action(principal.company_id, action, params)
        raise Forbidden("Sign in first")

    async def _admin_action(self, action: str, params: dict) -> Any:
        match action:
            case "contest.create":
                contest = await self.admin.create_contest(_param(params, "name"))
                return rows.contest_to_row(contest)
            case "contest.list":
                return [rows.contest_to_row(c) for c in await self.admin.list_contests()]
            case "contest.get":
                contest = await self.admin.get_contest(_param(params, "contest_id"))
                return rows.contest_to_row(contest)
            case "contest.rename":
                contest = await self.admin.rename_contest(
                    _param(params, "contest_id"), _param(params, "name")
                )
                return rows.contest_to_row(contest)
            case "contest.delete":
                await self.admin.delete_contest(_param(params, "contest_id"))
                return None
            case "contest.start":
                contest = await self.admin.start_contest(_param(params, "contest_id"))
                return rows.contest_to_row(contest)
            case "contest.end":
                contest = await self.admin.end_contest(_param(params, "contest_id"))
                return rows.contest_to_row(contest)
            case "company.create":
                company = await self.admin.create_company(
                    _param(params, "name"), _param(params, "email"), params.get("location", "")
                )
                return _public(rows.company_to_row(company))
            case "company.list":
                return [_public(rows.company_to_row(c)) for c in await self.admin.list_companies()]
            case "company.get":
                company = await self.admin.get_company(_param(params, "company_id"))
                return _public(rows.company_to_row(company))
            case "company.update":
                company = await self.admin.update_company(
                    _param(params, "company_id"),
                    name=params.get("name"),
                    email=params.get("email"),
                    location=params.get("location"),
                )
                return _public(rows.company_to_row(company))
            case "company.reset_password":
                await self.admin.reset_company_password(_param(params, "company_id"))
                return None
            case "company.delete":
                await self.admin.delete_company(_param(params, "company_id"))
                return None
            case _:
                raise Forbidden(f"Action {action} is not allowed")

    async def _company_action(self, company_id: str, action: str, params: dict) -> Any:
        match action:
            case "company.change_password":
                await self.companies.change_password(
                    company_id, _param(params, "old_password"), _param(params, "new_password")
                )
                return None
            case "company.location":
                return {"location": await self.companies.get_location(company_id)}
            case "task.create":
                task = await self.companies.create_task(
                    company_id,
                    _param(params, "contest_id"),
                    params.get("question", ""),
                    params.get("correct_answer", ""),
                    time_limit=params.get("time_limit"),
                    file=_upload(params),
                )
                return rows.task_to_row(task)
            case "task.list":
                return [rows.task_to_row(t) for t in await self.companies.list_tasks(company_id)]
            case "task.update":
                task = await self.companies.update_task(
                    company_id,
                    _param(params, "task_id"),
                    question=params.get("question"),
                    correct_answer=params.get("correct_answer"),
                    time_limit=params.get("time_limit"),
                    file=_upload(params),
                )
                return rows.task_to_row(task)
            case "task.delete":
                await self.companies.delete_task(company_id, _param(params, "task_id"))
                return None
            case "task.file":
                path = await self.companies.get_task_file(_param(params, "task_id"))
                async with aiofiles.open(path, "rb") as f:
                    content = await f.read()
                return {
                    "filename": path.name,
                    "content": base64.b64encode(content).decode("ascii"),
                }
            case "team.unassigned":
                teams = await self.companies.list_unassigned_teams()
                return [_public(rows.team_to_row(t)) for t in teams]
            case "team.approve":
                team = await self.companies.approve_team(company_id, _param(params, "team_id"))
                return _public(rows.team_to_row(team))
            case _:
                raise Forbidden(f"Action {action} is not allowed")
