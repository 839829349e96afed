import hashlib
import hmac


def sha256_hex(value: str) -> str:
    # SHA-256 is fine for random tokens and short-lived codes; passwords use bcrypt
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def digests_match(left: str, right: str) -> bool:
    """Fixed-time comparison of two hex digests."""
    if not isinstance(left, str) or not isinstance(right, str):
        return False
    return hmac.compare_digest(left.encode("ascii", "ignore"), right.encode("ascii", "ignore"))
