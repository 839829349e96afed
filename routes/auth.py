from datetime import datetime

from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User
from security.password import hash_password, verify_password
from security.session import create_session, revoke_session
from security.rate_limit import check_and_increment_login_rate
from services.otp_service import normalize_email
from utils.audit import log_event
from utils.auth_context import login_required


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "otpgate_session")


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    min_length = current_app.config.get("PASSWORD_MIN_LENGTH", 6)
    if not isinstance(password, str) or len(password) < min_length:
        return jsonify(error=f"Password must be at least {min_length} characters"), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", email=email)
        return jsonify(error="Unable to create account"), 409

    user = User(email=email, password_hash=hash_password(password))
    db.session.add(user)
    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id, email=email)

    return jsonify(message="Registered successfully"), 201


@auth_bp.post("/login")
def login():
    """Password grant. Unknown user and wrong password get the same 401."""
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""

    allowed, retry_after = check_and_increment_login_rate()
    if not allowed:
        log_event("LOGIN_RATE_LIMIT", email=email, metadata={"retry_after": retry_after})
        return jsonify(error="Too many login requests. Slow down.", retry_after_seconds=retry_after), 429

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, email=email)
        return jsonify(error="Invalid credentials"), 401

    user.last_login_at = datetime.utcnow()
    raw_token = create_session(user.id)

    resp = jsonify(message="Login OK", user={"id": user.id, "email": user.email})
    resp.set_cookie(
        _cookie_name(),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )

    log_event("LOGIN_SUCCESS", user_id=user.id, email=email)
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(id=g.user.id, email=g.user.email), 200


@auth_bp.post("/logout")
def logout():
    # Idempotent: the login flow signs out defensively even when no session exists
    revoked = revoke_session(request.cookies.get(_cookie_name()))
    if revoked:
        user = getattr(g, "user", None)
        log_event("LOGOUT", user_id=user.id if user else None)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(_cookie_name(), path="/")
    return resp, 200
