"""Application error carrying a machine readable code.

Codes:
  invalid_input, unauthorized, not_found, storage_error,
  embedding_error, llm_error, timeout
"""

INVALID_INPUT = "invalid_input"
UNAUTHORIZED = "unauthorized"
NOT_FOUND = "not_found"
STORAGE_ERROR = "storage_error"
EMBEDDING_ERROR = "embedding_error"
LLM_ERROR = "llm_error"
TIMEOUT = "timeout"


class AppError(Exception):
    """Domain error with a code that the HTTP layer maps to a status.

    Attributes:
        code (str): One of the module level error codes.
        message (str): Human-readable description.
        cause (BaseException | None): The underlying error, if any.
    """

    def __init__(self, code: str, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


def is_code(err: BaseException, code: str) -> bool:
    """Return True if err (or any error in its cause chain) is an AppError with the given code."""
    current: BaseException | None = err
    while current is not None:
        if isinstance(current, AppError):
            return current.code == code
        current = current.__cause__
    return False
