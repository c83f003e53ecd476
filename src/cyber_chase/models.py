"""Domain models for Cyber-Chase."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum, auto
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationState(Enum):
    """States in the bot conversation flow."""
    START = auto()
    REGISTER_CONFIRM = auto()
    REGISTER_NAME = auto()
    REGISTER_EMAIL = auto()
    EMAIL = auto()
    PASSWORD = auto()
    MENU = auto()
    WAITING_GEO = auto()
    WAITING_APPROVE = auto()
    READY_FOR_TASK = auto()
    TASK_RECEIVED = auto()
    ANSWER = auto()
    ALL_TASKS_COMPLETE = auto()


class ContestStatus(str, Enum):
    """Contest lifecycle."""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass
class Team:
    """A registered team."""
    id: str
    name: str
    email: str
    password_hash: str
    external_id: Optional[str] = None
    contest_id: Optional[str] = None
    current_task_id: Optional[str] = None
    current_company_id: Optional[str] = None
    total_duration: timedelta = field(default_factory=timedelta)
    points: int = 0
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Contest:
    """A time-boxed event grouping tasks."""
    id: str
    name: str
    status: ContestStatus = ContestStatus.PENDING
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Company:
    """A participating company hosting tasks at a location."""
    id: str
    name: str
    email: str
    password_hash: str
    reset_required: bool = True
    location: str = ""
    current_team_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Task:
    """A puzzle owned by a company within a contest."""
    id: str
    contest_id: str
    company_id: str
    question: str
    correct_answer: str
    question_file: Optional[str] = None
    time_limit: Optional[int] = None  # minutes, informational only
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class TeamTaskSession:
    """A team's attempt at one task."""
    id: str
    team_id: str
    task_id: str
    start_time: datetime
    attempts: int = 0
    finished: bool = False
    is_correct: bool = False


@dataclass
class TeamAnswer:
    """Audit record of a submitted answer."""
    id: str
    team_id: str
    task_id: str
    answer: str
    is_correct: bool
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Button:
    """Inline button offered with a reply."""
    label: str
    data: str


@dataclass
class Reply:
    """One outbound message produced by a conversation transition."""
    text: str
    buttons: list[Button] = field(default_factory=list)
    document: Optional[str] = None  # path of a file to send with the text


@dataclass
class ConversationSession:
    """Runtime conversation state for a chat user (not persisted)."""
    user_id: str
    state: ConversationState = ConversationState.START
    email: Optional[str] = None
    team_id: Optional[str] = None
    task_id: Optional[str] = None
    pending_team_name: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
