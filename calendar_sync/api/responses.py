"""レスポンスエンベロープ

全レスポンスは {result, code, message?, data?} 形式で返す。
"""

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

RESULT_SUCCESS = "Success"
RESULT_FAILURE = "Failure"


def envelope(
    result: str,
    code: int,
    message: Optional[str] = None,
    data: Any = None,
    **extra: Any,
) -> dict[str, Any]:
    body: dict[str, Any] = {"result": result, "code": code}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def success(message: Optional[str] = None, data: Any = None, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content=jsonable_encoder(envelope(RESULT_SUCCESS, 200, message, data, **extra)),
    )


def failure(code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=code, content=envelope(RESULT_FAILURE, code, message))
