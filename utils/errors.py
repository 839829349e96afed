"""
Error taxonomy for the OTP login flow.

Raised by the OTP service, turned into JSON by the /otp blueprint, and rebuilt
from the response ``code`` by ``login_flow.otp_client``. Messages are safe to
show to the user; diagnostic detail goes to the server log only.
"""


class OtpError(Exception):
    code = "internal"
    status_code = 500
    message = "An unexpected error occurred"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class InvalidRequest(OtpError):
    code = "invalid_request"
    status_code = 400
    message = "Invalid request"


class InvalidCredentials(OtpError):
    code = "invalid_credentials"
    status_code = 401
    message = "Invalid email or password. Please try again."


class RateLimited(OtpError):
    code = "rate_limited"
    status_code = 429
    message = "Too many OTP requests. Please try again in 5 minutes."

    def __init__(self, retry_after: int, message: str = None):
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        return {**super().to_dict(), "retryAfter": self.retry_after}


class DeliveryFailed(OtpError):
    code = "delivery_failed"
    status_code = 500
    message = "Failed to send OTP. Please try again."


class NotFound(OtpError):
    code = "not_found"
    status_code = 400
    message = "OTP expired or not found. Please request a new one."


class Expired(OtpError):
    code = "expired"
    status_code = 400
    message = "OTP has expired. Please request a new one."


class TooManyAttempts(OtpError):
    code = "too_many_attempts"
    status_code = 400
    message = "Too many failed attempts. Please request a new OTP."


class InvalidCode(OtpError):
    code = "invalid_code"
    status_code = 400
    message = "Invalid OTP. Please try again."

    def __init__(self, attempts_left: int, message: str = None):
        super().__init__(message)
        self.attempts_left = attempts_left

    def to_dict(self) -> dict:
        return {**super().to_dict(), "attemptsLeft": self.attempts_left}


class Internal(OtpError):
    pass


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (InvalidRequest, InvalidCredentials, RateLimited, DeliveryFailed,
                NotFound, Expired, TooManyAttempts, InvalidCode, Internal)
}
