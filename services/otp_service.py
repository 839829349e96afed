"""
Email OTP challenge service.

Every operation runs against the database only; nothing is kept in process
memory between requests. Deleting an ``OtpCode`` row is the single signal that
a challenge is consumed, whether by success, expiry, attempt cap, or a newer
send for the same email.
"""
import logging
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.otp_code import OtpCode
from models.user import User
from security.otp import generate_otp, hash_otp, otp_matches
from security.rate_limit import check_and_increment_otp_send_rate
from utils.audit import log_event
from utils.emailer import email_configured, send_otp_email
from utils.errors import (
    DeliveryFailed,
    Expired,
    Internal,
    InvalidCode,
    InvalidRequest,
    NotFound,
    RateLimited,
    TooManyAttempts,
)

logger = logging.getLogger(__name__)


def normalize_email(value) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def _max_attempts() -> int:
    return current_app.config.get("OTP_MAX_ATTEMPTS", 5)


def _delete_record(record_id: int) -> bool:
    """Conditional delete. True only for the caller that actually removed the row."""
    result = db.session.execute(
        delete(OtpCode)
        .where(OtpCode.id == record_id)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount == 1


def _store_new_code(email: str, now: datetime) -> tuple[int, str]:
    ttl = current_app.config.get("OTP_TTL_SECONDS", 600)
    code = generate_otp()
    try:
        db.session.execute(
            delete(OtpCode)
            .where(OtpCode.email == email)
            .execution_options(synchronize_session=False)
        )
        record = OtpCode(
            email=email,
            otp_hash=hash_otp(code),
            expires_at=now + timedelta(seconds=ttl),
            attempts=0,
            created_at=now,
        )
        db.session.add(record)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to store OTP for %s", email)
        raise Internal("Failed to generate OTP. Please try again.")
    return record.id, code


def send_otp(email, now=None) -> None:
    """
    Issue a fresh code for ``email`` and mail it.

    Raises InvalidRequest, RateLimited, DeliveryFailed or Internal. The code
    itself never leaves this function except through the email API.
    """
    email = normalize_email(email)
    if not email:
        raise InvalidRequest("Email is required")
    now = now or datetime.utcnow()

    allowed, retry_after = check_and_increment_otp_send_rate(email, now=now)
    if not allowed:
        log_event("OTP_SEND_RATE_LIMIT", email=email, metadata={"retry_after": retry_after})
        raise RateLimited(retry_after)

    record_id, code = _store_new_code(email, now)

    if not email_configured():
        logger.warning(
            "Email API key not configured: OTP generated for %s but not delivered. "
            "Set RESEND_API_KEY for production use.", email
        )
        log_event("OTP_SENT", email=email, metadata={"delivered": False})
        return

    ok, error = send_otp_email(email, code)
    if not ok:
        _delete_record(record_id)
        logger.error("OTP email delivery failed for %s: %s", email, error)
        log_event("OTP_SEND_FAIL", email=email)
        raise DeliveryFailed()

    log_event("OTP_SENT", email=email, metadata={"delivered": True})


def verify_otp(email, code, now=None) -> bool:
    """
    Check ``code`` against the outstanding challenge for ``email``.

    Returns True exactly once per issued code. Raises InvalidRequest, NotFound,
    Expired, TooManyAttempts or InvalidCode.
    """
    email = normalize_email(email)
    code = code.strip() if isinstance(code, str) else ""
    if not email or not code:
        raise InvalidRequest("Email and OTP are required")
    now = now or datetime.utcnow()
    max_attempts = _max_attempts()

    record = (
        OtpCode.query
        .filter_by(email=email)
        .order_by(OtpCode.created_at.desc(), OtpCode.id.desc())
        .first()
    )
    if record is None:
        log_event("OTP_NOT_FOUND", email=email)
        raise NotFound()

    record_id = record.id

    if now > record.expires_at:
        _delete_record(record_id)
        log_event("OTP_EXPIRED", email=email)
        raise Expired()

    if record.attempts >= max_attempts:
        _delete_record(record_id)
        log_event("OTP_TOO_MANY_ATTEMPTS", email=email)
        raise TooManyAttempts()

    if not otp_matches(code, record.otp_hash):
        result = db.session.execute(
            update(OtpCode)
            .where(OtpCode.id == record_id, OtpCode.attempts < max_attempts)
            .values(attempts=OtpCode.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        attempts = None
        if result.rowcount == 1:
            attempts = db.session.execute(
                select(OtpCode.attempts).where(OtpCode.id == record_id)
            ).scalar_one_or_none()
        if attempts is None:
            # consumed or capped by a concurrent verify
            raise NotFound()

        log_event("OTP_INVALID", email=email, metadata={"attempts": attempts})
        raise InvalidCode(attempts_left=max(max_attempts - attempts, 0))

    if not _delete_record(record_id):
        raise NotFound()

    log_event("OTP_VERIFIED", email=email)
    return True


def check_user(email) -> bool:
    """Whether an account exists for ``email``. Lookup failures read as False."""
    email = normalize_email(email)
    if not email:
        return False
    try:
        found = (
            db.session.query(User.id)
            .filter(func.lower(User.email) == email)
            .first()
        )
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("User lookup failed during check-user")
        return False
    return found is not None


def purge_expired_otps(now=None) -> int:
    now = now or datetime.utcnow()
    result = db.session.execute(
        delete(OtpCode)
        .where(OtpCode.expires_at < now)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount
