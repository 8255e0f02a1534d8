"""Translate domain exceptions into HTTP responses."""

from fastapi import HTTPException

from thinkvoice_console.common.exceptions import (
    AgentNotFoundError,
    ConsoleError,
    DuplicateEmailError,
    DuplicateSlugError,
    DuplicateSubAccountError,
    InvalidCredentialsError,
    InvalidInputError,
    PlanLimitError,
    TenantNotFoundError,
    TokenExpiredError,
    TokenInvalidError,
    UnauthorizedError,
    UpstreamApiError,
    UserNotFoundError,
)

_STATUS: list[tuple[type[ConsoleError], int]] = [
    (InvalidCredentialsError, 401),
    (TokenExpiredError, 401),
    (TokenInvalidError, 401),
    (UnauthorizedError, 403),
    (PlanLimitError, 403),
    (TenantNotFoundError, 404),
    (UserNotFoundError, 404),
    (AgentNotFoundError, 404),
    (DuplicateEmailError, 409),
    (DuplicateSlugError, 409),
    (DuplicateSubAccountError, 409),
    (InvalidInputError, 400),
]


def http_exception(exc: ConsoleError) -> HTTPException:
    if isinstance(exc, UpstreamApiError):
        return HTTPException(status_code=exc.status, detail=exc.message)
    for exc_type, status in _STATUS:
        if isinstance(exc, exc_type):
            headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
            return HTTPException(status_code=status, detail=exc.message, headers=headers)
    return HTTPException(status_code=400, detail=exc.message)
