import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _csv(value: str) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as otpgate.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "otpgate.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "otpgate_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
    PASSWORD_MIN_LENGTH = 6

    # Per-IP rate limit for the password sign-in endpoint
    LOGIN_RATE_WINDOW_SECONDS = 60
    LOGIN_RATE_MAX_REQUESTS = 15

    # Email OTP
    OTP_TTL_SECONDS = int(os.getenv("OTP_TTL_SECONDS", "600"))  # 10 minutes
    OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))

    # OTP send throttling, per email
    OTP_SEND_WINDOW_SECONDS = 300
    OTP_SEND_MAX_REQUESTS = 3

    # Transactional email API (Resend). Without a key codes are generated but not delivered.
    RESEND_API_KEY = os.getenv("RESEND_API_KEY")
    RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
    OTP_EMAIL_FROM = os.getenv("OTP_EMAIL_FROM", "VNU IT Solutions <onboarding@resend.dev>")
    OTP_EMAIL_SUBJECT = "Your Login OTP - Vriddhion & Udaanex"
    EMAIL_TIMEOUT_SECONDS = 15

    # CORS for the /otp endpoint
    CORS_ALLOWED_ORIGINS = _csv(os.getenv(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://localhost:3000,https://lovable.dev,https://vnuitsolutions.com,"
        "https://www.vnuitsolutions.com,https://vnu.lovable.app",
    ))
    CORS_ALLOWED_ORIGIN_PATTERNS = [
        r"^https://[a-z0-9-]+\.lovable\.app$",
        r"^https://[a-z0-9-]+\.lovableproject\.com$",
        r"^https://[a-z0-9-]+--[a-z0-9-]+\.lovable\.app$",
    ]

    DEBUG = False
