from datetime import datetime, timedelta
from flask import request, current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from models import db
from models.rate_limit_window import RateLimitWindow

LOGIN_IP_SCOPE = "login-ip"
OTP_SEND_SCOPE = "otp-send"


def client_ip() -> str:
    return request.headers.get("X-Forwarded-For", request.remote_addr) or "unknown"


def _take_slot(scope: str, key: str, max_requests: int, window_floor: datetime) -> bool:
    result = db.session.execute(
        update(RateLimitWindow)
        .where(
            RateLimitWindow.scope == scope,
            RateLimitWindow.key == key,
            RateLimitWindow.window_start > window_floor,
            RateLimitWindow.count < max_requests,
        )
        .values(count=RateLimitWindow.count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _restart_window(scope: str, key: str, window_floor: datetime, now: datetime) -> bool:
    result = db.session.execute(
        update(RateLimitWindow)
        .where(
            RateLimitWindow.scope == scope,
            RateLimitWindow.key == key,
            RateLimitWindow.window_start <= window_floor,
        )
        .values(window_start=now, count=1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def consume(scope: str, key: str, max_requests: int, window_seconds: int, now=None) -> tuple[bool, int]:
    """
    Fixed window counter backed by the rate_limit_windows table.
    Returns (allowed, retry_after_seconds).

    The check and the increment are one conditional UPDATE, so two requests
    racing for the last slot cannot both be admitted. Refused requests do not
    count against the window.
    """
    now = now or datetime.utcnow()
    window = timedelta(seconds=window_seconds)
    window_floor = now - window

    for _ in range(2):
        if _take_slot(scope, key, max_requests, window_floor) or _restart_window(scope, key, window_floor, now):
            db.session.commit()
            return True, 0

        row = RateLimitWindow.query.filter_by(scope=scope, key=key).first()
        if row is None:
            db.session.add(RateLimitWindow(scope=scope, key=key, window_start=now, count=1))
            try:
                db.session.commit()
                return True, 0
            except IntegrityError:
                # another request created the window first; go round again
                db.session.rollback()
                continue

        retry_after = int((row.window_start + window - now).total_seconds())
        db.session.commit()
        return False, max(retry_after, 1)

    return False, window_seconds


def check_and_increment_login_rate() -> tuple[bool, int]:
    return consume(
        LOGIN_IP_SCOPE,
        client_ip(),
        current_app.config.get("LOGIN_RATE_MAX_REQUESTS", 15),
        current_app.config.get("LOGIN_RATE_WINDOW_SECONDS", 60),
    )


def check_and_increment_otp_send_rate(email: str, now=None) -> tuple[bool, int]:
    return consume(
        OTP_SEND_SCOPE,
        email,
        current_app.config.get("OTP_SEND_MAX_REQUESTS", 3),
        current_app.config.get("OTP_SEND_WINDOW_SECONDS", 300),
        now=now,
    )
