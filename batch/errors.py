"""
Caller-facing errors for the job controller and the agent endpoints.

Unlike scoring/errors.py (task-level, stored on a task row), these reject
the whole request. Each carries the stable `code` clients switch on and the
HTTP status the routers translate it to.
"""


class BatchError(Exception):
    code = "BatchError"
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidScope(BatchError):
    code = "InvalidScope"


class MissingRef(BatchError):
    code = "MissingRef"


class InvalidWindowSize(BatchError):
    code = "InvalidWindowSize"


class MissingJobId(BatchError):
    code = "MissingJobId"


class NotFound(BatchError):
    code = "NotFound"
    http_status = 404


class NoEntitiesFound(NotFound):
    code = "NoEntitiesFound"


class QuotaExceeded(BatchError):
    code = "QuotaExceeded"
    http_status = 429


class InvalidLimit(BatchError):
    code = "InvalidLimit"
