"""Entry point for the Cyber-Chase bot server."""

import asyncio

from dotenv import load_dotenv
from loguru import logger

from .admin_service import ContestAdminService
from .bot_server import BotServer
from .company_service import CompanyService
from .config.settings import Settings
from .control import ControlHandler
from .email_service import EmailService
from .file_store import FileStore
from .log_setup import setup_logging
from .repository import create_repositories
from .session_store import InMemorySessionStore
from .state_machine import ConversationStateMachine
from .task_session import TaskSessionEngine
from .workflow import TeamWorkflowService


def build_server(settings: Settings) -> BotServer:
    """Wire repositories, services, the state machine and control actions together."""
    repositories = create_repositories(settings)
    email_service = EmailService(settings.smtp)
    file_store = FileStore(settings.storage.upload_dir)

    engine = TaskSessionEngine(repositories)
    workflow = TeamWorkflowService(
        repositories,
        email_service,
        engine,
        password_length=settings.credentials.team_password_length,
    )
    state_machine = ConversationStateMachine(
        workflow,
        InMemorySessionStore(),
        file_store,
        approval_attempts=settings.approval.poll_attempts,
        approval_interval=settings.approval.poll_interval_seconds,
    )

    admin_service = ContestAdminService(
        repositories,
        email_service,
        password_length=settings.credentials.company_password_length,
        admin_username=settings.admin.username,
        admin_password=settings.admin.password,
    )
    company_service = CompanyService(repositories, file_store, workflow)
    control = ControlHandler(admin_service, company_service)

    return BotServer(settings=settings, state_machine=state_machine, control=control)


def main() -> None:
    """Start the Cyber-Chase bot server."""
    # Load environment variables
    load_dotenv()

    settings = Settings()
    setup_logging(settings.log)
    if not settings.admin.password:
        logger.warning("ADMIN_PASSWORD is not set; organizer sign-in is disabled")

    server = build_server(settings)

    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        logger.info("Server shutdown.")


if __name__ == "__main__":
    main()
