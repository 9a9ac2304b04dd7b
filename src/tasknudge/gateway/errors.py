"""错误响应 -- 统一 {"error": {"code", "message"}} 结构"""

from starlette.responses import JSONResponse
from tasknudge.core.exceptions import (
    DeliveryError,
    DeliveryNotFoundError,
    InvalidArgumentError,
    InvalidDeliveryStateError,
    TaskNotFoundError,
)

_STATUS_BY_ERROR: list[tuple[type[DeliveryError], int]] = [
    (DeliveryNotFoundError, 404),
    (TaskNotFoundError, 404),
    (InvalidDeliveryStateError, 409),
    (InvalidArgumentError, 400),
]


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def delivery_error_response(error: DeliveryError) -> JSONResponse:
    """把领域异常映射为 HTTP 错误响应"""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return error_response(status_code, error.code, error.message)
    return error_response(500, error.code, error.message)
