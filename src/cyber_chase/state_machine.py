"""Conversation state machine for the contest bot."""

import asyncio
import re

from loguru import logger

from .errors import AlreadyLinked, CyberChaseError, InvalidCredentials, NoAvailableTask, SessionClosed
from .file_store import FileStore
from .models import Button, ConversationSession, ConversationState, Reply, Task
from .session_store import SessionStore
from .task_session import MAX_ATTEMPTS
from .workflow import TeamWorkflowService

JOIN_CONTEST = "join_contest"
SEND_GEO = "send_geo"
WAITING_APPROVE = "waiting_approve"
GET_TASK = "get_task"
SUBMIT_ANSWER = "submit_answer"
LOGOUT = "logout"

MENU_BUTTONS = {
    ConversationState.MENU: [Button("Join the contest", JOIN_CONTEST)],
    ConversationState.WAITING_GEO: [Button("Get location", SEND_GEO)],
    ConversationState.WAITING_APPROVE: [Button("Waiting for approval...", WAITING_APPROVE)],
    ConversationState.READY_FOR_TASK: [Button("Get task", GET_TASK)],
    ConversationState.TASK_RECEIVED: [Button("Submit answer", SUBMIT_ANSWER)],
    ConversationState.ALL_TASKS_COMPLETE: [Button("Log out", LOGOUT)],
}

# States in which each button is accepted.
BUTTON_STATES = {
    JOIN_CONTEST: {ConversationState.MENU},
    SEND_GEO: {ConversationState.WAITING_GEO},
    WAITING_APPROVE: {ConversationState.WAITING_APPROVE},
    GET_TASK: {ConversationState.READY_FOR_TASK},
    SUBMIT_ANSWER: {ConversationState.TASK_RECEIVED},
}

WELCOME = """\
Welcome to Cyber-Chase!

To sign in, send the email of your team.
To register a new team, send /register."""


class ConversationStateMachine:
    """Moves each chat user through registration, login and the contest.

    Every inbound text or button press produces exactly one ``Reply``.
    """

    EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
    YES = {"yes", "y", "да"}
    NO = {"no", "n", "нет"}

    def __init__(
        self,
        workflow: TeamWorkflowService,
        session_store: SessionStore,
        file_store: FileStore,
        approval_attempts: int = 30,
        approval_interval: float = 2.0,
    ):
        self.workflow = workflow
        self.sessions = session_store
        self.file_store = file_store
        self.approval_attempts = approval_attempts
        self.approval_interval = approval_interval

    def state_of(self, user_id: str) -> ConversationState | None:
        session = self.sessions.get(user_id)
        return session.state if session else None

    async def handle_text(self, user_id: str, text: str) -> Reply:
        """Process a text message based on the user's current state."""
        session = self.sessions.get_or_create(user_id)
        text = text.strip()

        match session.state:
            case ConversationState.START:
                return await self._handle_start(session, text)
            case ConversationState.REGISTER_CONFIRM:
                return self._handle_register_confirm(session, text)
            case ConversationState.REGISTER_NAME:
                return self._handle_register_name(session, text)
            case ConversationState.REGISTER_EMAIL:
                return await self._handle_register_email(session, text)
            case ConversationState.EMAIL:
                return self._handle_email(session, text)
            case ConversationState.PASSWORD:
                return await self._handle_password(session, text)
            case ConversationState.ANSWER:
                return await self._handle_answer(session, text)
            case _:
                return self._handle_menu_command(session, text)

    async def handle_button(self, user_id: str, data: str) -> Reply:
        """Process an inline button press."""
        session = self.sessions.get_or_create(user_id)

        if data == LOGOUT:
            self.sessions.delete(user_id)
            return Reply("You have signed out. Send /start to begin again.")

        if session.team_id is None:
            return Reply("Please sign in first. Send /start.")

        if session.state not in BUTTON_STATES.get(data, set()):
            return self._menu(session, "This action is not available right now.")

        if data == JOIN_CONTEST:
            return await self._handle_join_contest(session)
        if data == SEND_GEO:
            return await self._handle_send_geo(session)
        if data == GET_TASK:
            return await self._handle_get_task(session)
        if data == SUBMIT_ANSWER:
            session.state = ConversationState.ANSWER
            return Reply("Enter your answer:")
        return self._menu(session, "Still waiting for a company to approve your team...")

    async def await_approval(self, user_id: str) -> Reply | None:
        """Poll until a company approves the team or the attempts run out.

        Returns None when the user left the waiting state in the meantime.
        """
        session = self.sessions.get(user_id)
        if session is None or session.team_id is None:
            return None

        for _ in range(self.approval_attempts):
            await asyncio.sleep(self.approval_interval)
            if not self._still_waiting(user_id, session):
                return None
            try:
                team = await self.workflow.get_team(session.team_id)
            except CyberChaseError as e:
                logger.debug("Approval check for {} failed: {}", user_id, e)
                continue
            except Exception:
                logger.exception("Approval check for {} failed", user_id)
                continue
            if not self._still_waiting(user_id, session):
                return None
            if team.current_company_id:
                session.state = ConversationState.READY_FOR_TASK
                return self._menu(session, "Your team has been approved by the company!")

        if not self._still_waiting(user_id, session):
            return None
        session.state = ConversationState.MENU
        return self._menu(session, "Waiting for approval timed out. Please try again later.")

    def _still_waiting(self, user_id: str, session: ConversationSession) -> bool:
        return (
            self.sessions.get(user_id) is session
            and session.state == ConversationState.WAITING_APPROVE
        )

    async def _handle_start(self, session: ConversationSession, text: str) -> Reply:
        if text == "/start":
            return Reply(WELCOME)
        if text == "/register":
            session.state = ConversationState.REGISTER_NAME
            return Reply("Enter the name of your team:")

        session.email = text
        try:
            await self.workflow.get_team_by_email(text)
        except CyberChaseError:
            session.state = ConversationState.REGISTER_CONFIRM
            return Reply(f"No team is registered with {text}.\nDo you want to register? (yes/no)")

        session.state = ConversationState.PASSWORD
        return Reply("Enter your password:")

    def _handle_register_confirm(self, session: ConversationSession, text: str) -> Reply:
        answer = text.lower()
        if answer in self.YES:
            session.state = ConversationState.REGISTER_NAME
            return Reply("Enter the name of your team:")
        if answer in self.NO:
            session.state = ConversationState.START
            return Reply("OK, send your email again:")
        return Reply("Please answer 'yes' or 'no'.")

    def _handle_register_name(self, session: ConversationSession, text: str) -> Reply:
        if not text:
            return Reply("The team name cannot be empty. Enter the name of your team:")
        session.pending_team_name = text
        session.state = ConversationState.REGISTER_EMAIL
        return Reply("Enter the email to register with:")

    async def _handle_register_email(self, session: ConversationSession, email: str) -> Reply:
        if not self.EMAIL_REGEX.match(email):
            return Reply("Invalid email format. Please try again:")

        session.state = ConversationState.START
        try:
            await self.workflow.register(email, session.pending_team_name)
        except CyberChaseError as e:
            return Reply(f"Registration failed: {e}")
        finally:
            session.pending_team_name = None

        return Reply(
            f"Registration successful!\nA temporary password has been sent to {email}.\n"
            "Send your email to sign in."
        )

    def _handle_email(self, session: ConversationSession, email: str) -> Reply:
        session.email = email
        session.state = ConversationState.PASSWORD
        return Reply("Enter your password:")

    async def _handle_password(self, session: ConversationSession, password: str) -> Reply:
        try:
            team = await self.workflow.authenticate(session.email, password)
        except InvalidCredentials:
            session.state = ConversationState.EMAIL
            return Reply("Invalid email or password. Please try again.\nEnter your email:")

        try:
            await self.workflow.link_external_identity(session.email, session.user_id)
        except AlreadyLinked as e:
            session.state = ConversationState.START
            return Reply(f"Could not link this chat to your team: {e}")

        session.team_id = team.id
        logger.info("Chat {} signed in as team {}", session.user_id, team.id[:8])
        session.state = ConversationState.MENU
        return self._menu(session, f"Signed in as team {team.name}.")

    def _handle_menu_command(self, session: ConversationSession, text: str) -> Reply:
        if text == "/start":
            session.state = ConversationState.EMAIL
            return Reply("Welcome to the team bot!\nTo sign in, enter the email of your team:")
        if text == "/menu":
            return self._menu(session, "Main menu:")
        return self._menu(session, "Unknown command. Use the menu buttons or send /menu.")

    async def _handle_join_contest(self, session: ConversationSession) -> Reply:
        try:
            contest = await self.workflow.join_contest(session.team_id)
        except CyberChaseError as e:
            return self._menu(session, f"Error: {e}")

        session.state = ConversationState.WAITING_GEO
        return self._menu(session, f"You have joined the contest: {contest.name}")

    async def _handle_send_geo(self, session: ConversationSession) -> Reply:
        try:
            company = await self.workflow.next_location(session.team_id)
        except NoAvailableTask:
            session.state = ConversationState.ALL_TASKS_COMPLETE
            return self._menu(session, "There are no tasks left for your team.")
        except CyberChaseError as e:
            return self._menu(session, f"Could not get the location: {e}")

        session.state = ConversationState.WAITING_APPROVE
        return self._menu(
            session,
            f"Company location:\n{company.location}\n\nWait for the company to approve your team...",
        )

    async def _handle_get_task(self, session: ConversationSession) -> Reply:
        try:
            return await self._deliver_next_task(session)
        except CyberChaseError as e:
            return self._menu(session, f"Could not get a task: {e}")

    async def _handle_answer(self, session: ConversationSession, answer: str) -> Reply:
        try:
            correct = await self.workflow.submit_answer(session.team_id, session.task_id, answer)
            task_session = await self.workflow.get_task_session(session.team_id, session.task_id)
        except SessionClosed:
            verdict = "Time is up for this task."
            finished = True
        except CyberChaseError as e:
            session.state = ConversationState.MENU
            return self._menu(session, f"Could not submit the answer: {e}")
        else:
            verdict = "Correct answer!" if correct else "Wrong answer."
            finished = task_session.finished
            if not finished:
                session.state = ConversationState.TASK_RECEIVED
                attempts_left = MAX_ATTEMPTS - task_session.attempts
                return self._menu(session, f"{verdict} Attempts left: {attempts_left}")

        try:
            return await self._deliver_next_task(session, prefix=f"{verdict}\n\n")
        except CyberChaseError as e:
            session.state = ConversationState.MENU
            return self._menu(session, f"{verdict}\n\nCould not get the next task: {e}")

    async def _deliver_next_task(self, session: ConversationSession, prefix: str = "") -> Reply:
        """Fetch the team's next task; ``NoAvailableTask`` ends the contest for the team."""
        try:
            task = await self.workflow.get_task_for_team(session.team_id)
        except NoAvailableTask:
            session.task_id = None
            session.state = ConversationState.ALL_TASKS_COMPLETE
            return self._menu(session, f"{prefix}All tasks are complete. Well done!")

        session.task_id = task.id
        session.state = ConversationState.TASK_RECEIVED
        reply = self._menu(session, prefix + self._describe_task(task))
        if task.question_file:
            reply.document = str(self.file_store.path(task.id, task.question_file))
        return reply

    @staticmethod
    def _describe_task(task: Task) -> str:
        text = f"Task:\n\n{task.question}"
        if task.time_limit:
            text += f"\n\nTime: {task.time_limit} minutes"
        return text

    @staticmethod
    def _menu(session: ConversationSession, text: str) -> Reply:
        return Reply(text, buttons=list(MENU_BUTTONS.get(session.state, [])))
