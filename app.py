import click
from flask import Flask, request
from flask_migrate import Migrate

from config import Config
from models import db
from models.user import User
from routes import health_bp, auth_bp, bookings_bp
from security.session import create_session
from services.checkout_gateway import StripeCheckoutGateway
from services.notifications import EmailNotificationDispatcher
from utils.auth_context import load_current_user


def create_app(config_object=Config, gateway=None, notifier=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(bookings_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Payment + notification collaborators (tests pass fakes)
    app.extensions["checkout_gateway"] = gateway or StripeCheckoutGateway.from_config(app.config)
    app.extensions["booking_notifier"] = notifier or EmailNotificationDispatcher(app)

    @app.before_request
    def _load_user():
        load_current_user()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"

        # Browser frontend calls the API cross-origin with a bearer header
        origin = (request.headers.get("Origin") or "").rstrip("/")
        if origin and origin in app.config.get("ALLOWED_ORIGINS", []):
            resp.headers["Access-Control-Allow-Origin"] = origin
            resp.headers["Access-Control-Allow-Headers"] = "authorization, content-type"
            resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            resp.headers["Vary"] = "Origin"
        return resp

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("issue-token")
    @click.argument("email")
    def issue_token(email):
        """Create a bearer session for an existing user (local testing)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found", err=True)
            raise SystemExit(1)

        token = create_session(user.id, user_agent="flask-cli")
        click.echo(token)

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
