from flask import Flask
from config import Config
from routes import health_bp, auth_bp, otp_bp

from models import db
from flask_migrate import Migrate
from utils.auth_context import load_current_user
from utils.logger import configure_logging


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(otp_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    @app.before_request
    def _load_user():
        load_current_user()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
import click
from models.user import User
from security.password import hash_password
from services.otp_service import purge_expired_otps, normalize_email

def register_cli(app):
    @app.cli.command("create-user")
    @click.argument("email")
    @click.argument("password")
    def create_user(email, password):
        """Create an account in the local identity store."""
        email = normalize_email(email)
        if User.query.filter_by(email=email).first():
            click.echo("User already exists")
            return

        db.session.add(User(email=email, password_hash=hash_password(password)))
        db.session.commit()
        click.echo(f"{email} created")

    @app.cli.command("purge-expired-otps")
    def purge_expired():
        """Delete OTP rows whose expiry has passed."""
        count = purge_expired_otps()
        click.echo(f"Purged {count} expired OTP(s)")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
