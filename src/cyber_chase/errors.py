"""Error hierarchy surfaced to HTTP and chat callers.

Every error is non-fatal. Callers render ``str(error)`` to the user; the
base class decides which kind of failure it is.
"""


class CyberChaseError(Exception):
    """Base class for all domain errors."""

    message = "Operation failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class NotFoundError(CyberChaseError):
    message = "Not found"


class ConflictError(CyberChaseError):
    message = "Already exists"


class InvalidStateError(CyberChaseError):
    message = "Operation not allowed in the current state"


class UnauthorizedError(CyberChaseError):
    message = "Not authorized"


class ExternalDependencyError(CyberChaseError):
    message = "External service failed"


class InvalidInputError(CyberChaseError):
    message = "Invalid input"


class TeamNotFound(NotFoundError):
    message = "Team not found"


class TaskNotFound(NotFoundError):
    message = "Task not found"


class ContestNotFound(NotFoundError):
    message = "Contest not found"


class CompanyNotFound(NotFoundError):
    message = "Company not found"


class SessionNotFound(NotFoundError):
    message = "Task session not found"


class NoAvailableTask(NotFoundError):
    message = "No available tasks left"


class NoActiveContest(NotFoundError):
    message = "There is no active contest at the moment"


class AlreadyExists(ConflictError):
    message = "Already exists"


class AlreadyLinked(ConflictError):
    message = "This chat is already linked to another team"


class NotInContest(InvalidStateError):
    message = "Team is not assigned to a contest or company"


class TaskMismatch(InvalidStateError):
    message = "Team is not working on this task"


class SessionClosed(InvalidStateError):
    message = "Task is finished or timed out"


class TaskInProgress(InvalidStateError):
    message = "Team is still working on its current task"


class ContestStateError(InvalidStateError):
    message = "Contest is not in the required state"


class InvalidCredentials(UnauthorizedError):
    message = "Invalid email or password"


class Forbidden(UnauthorizedError):
    message = "Not authorized to access this resource"


class DeliveryFailed(ExternalDependencyError):
    message = "Failed to deliver the password email"
