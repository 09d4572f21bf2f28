import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class BookingError(Exception):
    """對外回應固定的錯誤代碼，前端依 error 欄位判斷"""

    code = "server_error"
    status_code = 500

    def __init__(self, message: Optional[str] = None, **extra: Any):
        super().__init__(message or self.code)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.code}
        if self.message:
            body["reason"] = self.message
        body.update({k: v for k, v in self.extra.items() if v is not None})
        return body


# ---------- 驗證錯誤（不碰資料庫） ----------
class InvalidPayload(BookingError):
    code = "invalid_payload"
    status_code = 400


class InvalidStart(BookingError):
    code = "invalid_start"
    status_code = 400


class RejectedDay(BookingError):
    code = "sunday_disabled"
    status_code = 400


class InvalidCategory(BookingError):
    code = "invalid_category"
    status_code = 400


# ---------- 規則錯誤 ----------
class WindowExhausted(BookingError):
    code = "too_late"
    status_code = 409


# ---------- 權限 ----------
class Unauthorized(BookingError):
    code = "unauthorized"
    status_code = 401


class Forbidden(BookingError):
    code = "forbidden"
    status_code = 403


class TermsRequired(BookingError):
    code = "must_accept_terms"
    status_code = 403


# ---------- 衝突與狀態 ----------
class Overlap(BookingError):
    code = "overlap"
    status_code = 409

    def __init__(self, conflict_id: Optional[str] = None):
        super().__init__(conflict_id=conflict_id)
        self.conflict_id = conflict_id


class NotFound(BookingError):
    code = "not_found"
    status_code = 404


class InvalidStatus(BookingError):
    code = "invalid_status"
    status_code = 409


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        logging.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logging.warning(f"{request.method} {request.url.path} 欄位格式錯誤: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": InvalidPayload.code})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logging.error(f"🔥 {request.method} {request.url.path} 未處理的錯誤: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "server_error"})
