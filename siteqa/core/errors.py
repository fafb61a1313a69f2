from typing import Any


class ApiError(Exception):
    """Error rendered as ``{"error": ..., "message": ..., **extra}``."""

    def __init__(self, status_code: int, error: str, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.message = message
        self.extra = extra

    def to_body(self) -> dict[str, Any]:
        return {"error": self.error, "message": self.message, **self.extra}


class InvalidRequestError(ApiError):
    def __init__(self, message: str) -> None:
        super().__init__(400, "Invalid request", message)


class ConfigurationError(ApiError):
    def __init__(self, message: str) -> None:
        super().__init__(400, "Configuration error", message)


class AdmissionConflictError(ApiError):
    def __init__(self, error: str, message: str, active_job: dict[str, Any] | None = None) -> None:
        extra = {"active_job": active_job} if active_job is not None else {}
        super().__init__(409, error, message, **extra)
