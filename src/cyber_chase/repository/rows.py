"""Conversion between models and storage rows.

Both backends store the same flat rows: timestamps as ISO-8601 strings,
durations as seconds, enums as their values.
"""

from datetime import datetime, timedelta
from typing import Optional

from ..models import Company, Contest, ContestStatus, Task, Team, TeamAnswer, TeamTaskSession


def parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def team_to_row(team: Team) -> dict:
    return {
        "id": team.id,
        "name": team.name,
        "email": team.email,
        "password_hash": team.password_hash,
        "external_id": team.external_id,
        "contest_id": team.contest_id,
        "current_task_id": team.current_task_id,
        "current_company_id": team.current_company_id,
        "total_duration_seconds": team.total_duration.total_seconds(),
        "points": team.points,
        "created_at": format_datetime(team.created_at),
    }


def team_from_row(data: dict) -> Team:
    return Team(
        id=data["id"],
        name=data["name"],
        email=data["email"],
        password_hash=data["password_hash"],
        external_id=data.get("external_id"),
        contest_id=data.get("contest_id"),
        current_task_id=data.get("current_task_id"),
        current_company_id=data.get("current_company_id"),
        total_duration=timedelta(seconds=data.get("total_duration_seconds") or 0),
        points=data.get("points", 0),
        created_at=parse_datetime(data["created_at"]),
    )


def contest_to_row(contest: Contest) -> dict:
    return {
        "id": contest.id,
        "name": contest.name,
        "status": contest.status.value,
        "start_date": format_datetime(contest.start_date),
        "end_date": format_datetime(contest.end_date),
        "created_at": format_datetime(contest.created_at),
    }


def contest_from_row(data: dict) -> Contest:
    return Contest(
        id=data["id"],
        name=data["name"],
        status=ContestStatus(data.get("status", ContestStatus.PENDING.value)),
        start_date=parse_datetime(data.get("start_date")),
        end_date=parse_datetime(data.get("end_date")),
        created_at=parse_datetime(data["created_at"]),
    )


def company_to_row(company: Company) -> dict:
    return {
        "id": company.id,
        "name": company.name,
        "email": company.email,
        "password_hash": company.password_hash,
        "reset_required": company.reset_required,
        "location": company.location,
        "current_team_id": company.current_team_id,
        "created_at": format_datetime(company.created_at),
    }


def company_from_row(data: dict) -> Company:
    return Company(
        id=data["id"],
        name=data["name"],
        email=data["email"],
        password_hash=data["password_hash"],
        reset_required=data.get("reset_required", True),
        location=data.get("location") or "",
        current_team_id=data.get("current_team_id"),
        created_at=parse_datetime(data["created_at"]),
    )


def task_to_row(task: Task) -> dict:
    return {
        "id": task.id,
        "contest_id": task.contest_id,
        "company_id": task.company_id,
        "question": task.question,
        "correct_answer": task.correct_answer,
        "question_file": task.question_file,
        "time_limit": task.time_limit,
        "created_at": format_datetime(task.created_at),
    }


def task_from_row(data: dict) -> Task:
    return Task(
        id=data["id"],
        contest_id=data["contest_id"],
        company_id=data["company_id"],
        question=data.get("question") or "",
        correct_answer=data["correct_answer"],
        question_file=data.get("question_file"),
        time_limit=data.get("time_limit"),
        created_at=parse_datetime(data["created_at"]),
    )


def session_to_row(session: TeamTaskSession) -> dict:
    return {
        "id": session.id,
        "team_id": session.team_id,
        "task_id": session.task_id,
        "start_time": format_datetime(session.start_time),
        "attempts": session.attempts,
        "finished": session.finished,
        "is_correct": session.is_correct,
    }


def session_from_row(data: dict) -> TeamTaskSession:
    return TeamTaskSession(
        id=data["id"],
        team_id=data["team_id"],
        task_id=data["task_id"],
        start_time=parse_datetime(data["start_time"]),
        attempts=data.get("attempts", 0),
        finished=data.get("finished", False),
        is_correct=data.get("is_correct", False),
    )


def answer_to_row(answer: TeamAnswer) -> dict:
    return {
        "id": answer.id,
        "team_id": answer.team_id,
        "task_id": answer.task_id,
        "answer": answer.answer,
        "is_correct": answer.is_correct,
        "created_at": format_datetime(answer.created_at),
    }


def answer_from_row(data: dict) -> TeamAnswer:
    return TeamAnswer(
        id=data["id"],
        team_id=data["team_id"],
        task_id=data["task_id"],
        answer=data["answer"],
        is_correct=data["is_correct"],
        created_at=parse_datetime(data["created_at"]),
    )
