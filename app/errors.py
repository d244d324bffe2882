from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class ServiceError(HTTPException):
    """Base for errors raised by services and translated at the HTTP edge."""

    status_code_default = 500
    code = "internal_error"

    def __init__(self, detail: str, details=None):
        super().__init__(
            status_code=self.status_code_default,
            detail={"code": self.code, "message": detail, "details": details},
        )
        self.message = detail

    def __str__(self) -> str:
        return self.message


class ValidationError(ServiceError):
    status_code_default = 400
    code = "validation_error"


class NotFoundError(ServiceError):
    status_code_default = 404
    code = "not_found"


class PermissionDeniedError(ServiceError):
    status_code_default = 403
    code = "permission_denied"


class ConflictError(ServiceError):
    status_code_default = 409
    code = "conflict"


def _error_payload(code: str, message: str, details):
    return {"success": False, "code": code, "message": message, "details": details}


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # exc.errors() ctx may contain raw Exception objects (not JSON-serialisable).
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items()}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
