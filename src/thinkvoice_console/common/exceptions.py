"""ThinkVoice Console exception hierarchy."""


class ConsoleError(Exception):
    """Base exception for all console errors."""

    def __init__(self, message: str = "", code: str = "CONSOLE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidCredentialsError(ConsoleError):
    """Raised when an email/password pair does not match.

    The message never reveals whether the email exists.
    """

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class TokenExpiredError(ConsoleError):
    """Raised when a bearer token is past its expiry."""

    def __init__(self, message: str = "Token expired"):
        super().__init__(message, code="TOKEN_EXPIRED")


class TokenInvalidError(ConsoleError):
    """Raised when a bearer token is malformed or its signature fails."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, code="TOKEN_INVALID")


class UnauthorizedError(ConsoleError):
    """Raised when a valid identity lacks the role or tenant for an action."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, code="UNAUTHORIZED")


class DuplicateEmailError(ConsoleError):
    """Raised when a user email is already in use."""

    def __init__(self, message: str = "Email already in use"):
        super().__init__(message, code="DUPLICATE_EMAIL")


class DuplicateSlugError(ConsoleError):
    """Raised when a tenant slug is already taken."""

    def __init__(self, message: str = "Tenant slug already exists"):
        super().__init__(message, code="DUPLICATE_SLUG")


class DuplicateSubAccountError(ConsoleError):
    """Raised when a voice-platform sub-account is already linked to a tenant."""

    def __init__(self, message: str = "Sub-account already linked to another tenant"):
        super().__init__(message, code="DUPLICATE_SUB_ACCOUNT")


class TenantNotFoundError(ConsoleError):
    def __init__(self, message: str = "Tenant not found"):
        super().__init__(message, code="NOT_FOUND")


class UserNotFoundError(ConsoleError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message, code="NOT_FOUND")


class AgentNotFoundError(ConsoleError):
    def __init__(self, message: str = "Agent not found"):
        super().__init__(message, code="NOT_FOUND")


class PlanLimitError(ConsoleError):
    """Raised when creating a resource would exceed the tenant's plan."""

    def __init__(self, message: str, limit: int = 0, current: int = 0):
        self.limit = limit
        self.current = current
        super().__init__(message, code="PLAN_LIMIT")


class UpstreamApiError(ConsoleError):
    """Raised when the voice platform answers with a non-success status.

    ``message`` carries the platform's own error text.
    """

    def __init__(self, message: str, status: int = 500):
        self.status = status
        super().__init__(message, code="UPSTREAM_ERROR")


class MigrationStepFailed(ConsoleError):
    """Raised when a non-swallowable migration step fails; aborts the run."""

    def __init__(self, step: str, statement: str = "", cause: str = ""):
        self.step = step
        self.statement = statement
        message = f"Migration step '{step}' failed"
        if cause:
            message = f"{message}: {cause}"
        super().__init__(message, code="MIGRATION_FAILED")


class InvalidInputError(ConsoleError):
    """Raised when a request value is outside its allowed set."""

    def __init__(self, message: str):
        super().__init__(message, code="INVALID_INPUT")
