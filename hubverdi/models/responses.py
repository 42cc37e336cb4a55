"""HTTP response builders for the signup endpoint.

  build_success_response():      200 — submission accepted (delivery outcome not exposed)
  build_rejection_response():    400 — InputGuard returned Rejected
  build_bad_body_response():     400 — body is not a JSON object or form
  build_rate_limited_response(): 429 — per-IP limit exceeded
  build_server_error_response(): 500 — unexpected failure

Bodies carry only generic user-facing text. Internal details (matched
signature, SMTP errors, stack traces) are never included.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from hubverdi.models.results import Rejected
from hubverdi.models.submissions import NewsletterSubscription, Submission

MSG_SIGNUP_COMPLETE = "가입 신청이 완료되었습니다. 2-3일 내에 연락드리겠습니다."
MSG_NEWSLETTER_COMPLETE = "뉴스레터 구독이 완료되었습니다."
MSG_BAD_BODY = "요청 형식이 올바르지 않습니다."
MSG_RATE_LIMITED = "Too many requests from this IP, please try again later."
MSG_SERVER_ERROR = "서버 오류가 발생했습니다. 잠시 후 다시 시도해주세요."

BAD_BODY_CODE = "INVALID_BODY"


def build_success_response(submission: Submission) -> JSONResponse:
    message = (
        MSG_NEWSLETTER_COMPLETE
        if isinstance(submission, NewsletterSubscription)
        else MSG_SIGNUP_COMPLETE
    )
    return JSONResponse(status_code=200, content={"success": True, "message": message})


def build_rejection_response(result: Rejected) -> JSONResponse:
    """HTTP 400 with the generic message and the internal reason code.

    .. code-block:: json

        {"error": "허용되지 않는 문자가 포함되어 있습니다.", "code": "DISALLOWED_CHARACTERS"}
    """
    return JSONResponse(
        status_code=400,
        content={"error": result.user_message, "code": result.reason_code.value},
    )


def build_bad_body_response() -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": MSG_BAD_BODY, "code": BAD_BODY_CODE})


def build_rate_limited_response() -> JSONResponse:
    return JSONResponse(status_code=429, content={"error": MSG_RATE_LIMITED})


def build_server_error_response() -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": MSG_SERVER_ERROR})
