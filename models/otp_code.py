from datetime import datetime
from models.db import db


class OtpCode(db.Model):
    """One outstanding login challenge per email. Deleting the row consumes it."""

    __tablename__ = "otp_codes"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, index=True)

    # sha256 hex of the code, never the code itself
    otp_hash = db.Column(db.String(64), nullable=False)

    expires_at = db.Column(db.DateTime, nullable=False)
    attempts = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
