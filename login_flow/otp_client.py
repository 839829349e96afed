import logging

from login_flow.transport import TransportError, TransportTimeout
from utils.errors import ERRORS_BY_CODE, DeliveryFailed, Internal, InvalidCode, RateLimited

logger = logging.getLogger(__name__)


def error_from_response(status: int, body) -> Exception:
    """Rebuild the service's error from its JSON body, without adding detail."""
    if not isinstance(body, dict):
        return Internal()

    message = body.get("error") if isinstance(body.get("error"), str) else None
    cls = ERRORS_BY_CODE.get(body.get("code"))
    if cls is None:
        cls = RateLimited if status == 429 else Internal

    try:
        if cls is RateLimited:
            return RateLimited(int(body.get("retryAfter") or 0), message)
        if cls is InvalidCode:
            return InvalidCode(int(body.get("attemptsLeft") or 0), message)
    except (TypeError, ValueError):
        logger.warning("Unreadable %s error body from /otp", cls.code)
        return Internal()
    return cls(message)


class OtpClient:
    """Caller side of ``POST /otp``."""

    def __init__(self, transport, path: str = "/otp"):
        self.transport = transport
        self.path = path

    def send(self, email: str) -> bool:
        try:
            status, body = self.transport.post_json(self.path, {"action": "send", "email": email})
        except TransportTimeout:
            logger.warning("OTP send timed out")
            raise DeliveryFailed()
        except TransportError:
            logger.warning("OTP send transport failure", exc_info=True)
            raise Internal()

        if status == 200 and isinstance(body, dict) and body.get("success"):
            return True
        raise error_from_response(status, body)

    def verify(self, email: str, code: str) -> bool:
        try:
            status, body = self.transport.post_json(
                self.path, {"action": "verify", "email": email, "otp": code}
            )
        except TransportError:
            logger.warning("OTP verify transport failure", exc_info=True)
            raise Internal()

        if status == 200 and isinstance(body, dict) and body.get("verified"):
            return True
        raise error_from_response(status, body)

    def check_user(self, email: str) -> bool:
        try:
            status, body = self.transport.post_json(self.path, {"action": "check-user", "email": email})
        except TransportError:
            logger.warning("check-user transport failure", exc_info=True)
            return False
        return status == 200 and isinstance(body, dict) and body.get("exists") is True
