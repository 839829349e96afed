from .db import db
from .user import User
from .audit_log import AuditLog
from .session import Session
from .rate_limit_window import RateLimitWindow
from .otp_code import OtpCode
