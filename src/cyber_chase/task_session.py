"""Task session lifecycle: handing out tasks and judging answers.

A team works on at most one task at a time. Handing out a task opens a
``TeamTaskSession``; each answer consumes an attempt. The session is
finalized when the answer is correct, when the attempts run out or when the
time limit is reached. Finalizing adds the elapsed time (never more than
the limit) to the team's total duration and a point for a correct answer.

The limits below are fixed for every task. ``Task.time_limit`` is shown to
teams but does not change them.
"""

import asyncio
import uuid
from collections import defaultdict
from datetime import timedelta

from loguru import logger

from .clock import Clock
from .errors import (
    NotInContest,
    NoAvailableTask,
    SessionClosed,
    SessionNotFound,
    TaskInProgress,
    TaskMismatch,
    TaskNotFound,
    TeamNotFound,
)
from .models import Task, Team, TeamAnswer, TeamTaskSession
from .repository import Repositories

MAX_ATTEMPTS = 3
SESSION_TIME_LIMIT = timedelta(minutes=10)


class TaskSessionEngine:
    """Creates, judges and finalizes team task sessions."""

    def __init__(self, repositories: Repositories, clock: Clock | None = None):
        self.teams = repositories.teams
        self.tasks = repositories.tasks
        self.sessions = repositories.sessions
        self.answers = repositories.answers
        self.clock = clock or Clock()
        # Serialises read-modify-write of a team and its session in this process.
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def assign_task(self, team_id: str) -> Task:
        """Hand the team a task from its current company it has not seen yet."""
        async with self._locks[team_id]:
            team = await self._get_team(team_id)
            if not team.contest_id or not team.current_company_id:
                raise NotInContest()

            if team.current_task_id:
                await self._close_current_if_overdue(team)

            used_ids = await self.sessions.get_used_task_ids(team.id)
            task = await self.tasks.find_available(
                team.contest_id, team.current_company_id, used_ids
            )
            if task is None:
                raise NoAvailableTask()

            team.current_task_id = task.id
            await self.teams.update(team)

            session = TeamTaskSession(
                id=str(uuid.uuid4()),
                team_id=team.id,
                task_id=task.id,
                start_time=self.clock.now(),
            )
            await self.sessions.create(session)
            logger.info("Team {} received task {}", team.id[:8], task.id[:8])
            return task

    async def submit_answer(self, team_id: str, task_id: str, answer: str) -> bool:
        """Judge an answer. Returns True when it matches exactly."""
        async with self._locks[team_id]:
            team = await self._get_team(team_id)
            session = await self.sessions.get(team_id, task_id)

            if team.current_task_id != task_id:
                if session is not None and session.finished:
                    raise SessionClosed()
                raise TaskMismatch()

            task = await self.tasks.get_by_id(task_id)
            if task is None:
                raise TaskNotFound()
            if session is None:
                raise SessionNotFound()

            elapsed = self._elapsed(session)
            if self._is_closed(session, elapsed):
                raise SessionClosed()

            session.attempts += 1
            is_correct = answer == task.correct_answer
            session.is_correct = is_correct

            finalized = (
                is_correct
                or session.attempts >= MAX_ATTEMPTS
                or elapsed >= SESSION_TIME_LIMIT
            )
            if finalized:
                self._finalize(team, session, elapsed)

            await self.sessions.update(session)
            if finalized:
                await self.teams.update(team)

            logger.info(
                "Team {} answered task {}: attempt {}, correct={}, finished={}",
                team.id[:8], task_id[:8], session.attempts, is_correct, session.finished,
            )

            await self._record_answer(team_id, task_id, answer, is_correct)
            return is_correct

    async def get_session(self, team_id: str, task_id: str) -> TeamTaskSession:
        session = await self.sessions.get(team_id, task_id)
        if session is None:
            raise SessionNotFound()
        return session

    async def _get_team(self, team_id: str) -> Team:
        team = await self.teams.get_by_id(team_id)
        if team is None:
            raise TeamNotFound()
        return team

    async def _close_current_if_overdue(self, team: Team) -> None:
        """Finalize a current session whose time ran out without an answer."""
        session = await self.sessions.get(team.id, team.current_task_id)
        if session is None or session.finished:
            team.current_task_id = None
            await self.teams.update(team)
            return

        elapsed = self._elapsed(session)
        if not self._is_closed(session, elapsed):
            raise TaskInProgress()

        self._finalize(team, session, elapsed)
        await self.sessions.update(session)
        await self.teams.update(team)
        logger.info("Team {} timed out on task {}", team.id[:8], session.task_id[:8])

    def _elapsed(self, session: TeamTaskSession) -> timedelta:
        return max(self.clock.now() - session.start_time, timedelta(0))

    @staticmethod
    def _is_closed(session: TeamTaskSession, elapsed: timedelta) -> bool:
        return (
            session.finished
            or session.attempts >= MAX_ATTEMPTS
            or elapsed > SESSION_TIME_LIMIT
        )

    @staticmethod
    def _finalize(team: Team, session: TeamTaskSession, elapsed: timedelta) -> None:
        session.finished = True
        team.total_duration += min(elapsed, SESSION_TIME_LIMIT)
        if session.is_correct:
            team.points += 1
        if team.current_task_id == session.task_id:
            team.current_task_id = None

    async def _record_answer(
        self, team_id: str, task_id: str, answer: str, is_correct: bool
    ) -> None:
        # The audit trail is telemetry; scoring above is already committed.
        record = TeamAnswer(
            id=str(uuid.uuid4()),
            team_id=team_id,
            task_id=task_id,
            answer=answer,
            is_correct=is_correct,
            created_at=self.clock.now(),
        )
        try:
            await self.answers.save(record)
        except Exception:
            logger.exception("Failed to record answer for team {}", team_id[:8])
