import secrets

from security.hashing import sha256_hex, digests_match

OTP_MIN = 100000
OTP_MAX = 999999


def generate_otp() -> str:
    """Random 6-digit code in 100000-999999, drawn from the OS CSPRNG."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def hash_otp(code: str) -> str:
    return sha256_hex(code)


def otp_matches(code: str, otp_hash: str) -> bool:
    if not isinstance(code, str) or not code:
        return False
    return digests_match(hash_otp(code), otp_hash)
