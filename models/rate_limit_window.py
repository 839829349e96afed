from datetime import datetime
from models.db import db


class RateLimitWindow(db.Model):
    __tablename__ = "rate_limit_windows"
    __table_args__ = (
        db.UniqueConstraint("scope", "key", name="uq_rate_limit_windows_scope_key"),
    )

    id = db.Column(db.Integer, primary_key=True)

    # scope separates counters, e.g. "otp-send" keyed by email, "login-ip" keyed by IP
    scope = db.Column(db.String(32), nullable=False)
    key = db.Column(db.String(255), nullable=False, index=True)

    window_start = db.Column(db.DateTime, nullable=False)
    count = db.Column(db.Integer, default=0, nullable=False)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
