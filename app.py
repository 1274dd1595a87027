import logging
import os

import click
from flask import Flask, jsonify
from flask_cors import CORS

from config import Config
from extensions import db, migrate, jwt
from utils.errors import LedgerError

# Models (imported so metadata is complete for create_all / migrations)
from users.models import User, ROLE_ADMIN
from members.models import Member  # noqa: F401
from groups.models import Group, GroupMember  # noqa: F401
from cycles.models import LoanCycle, LoanSequence, GroupFund, WeeklyCollection, CollectionPayment  # noqa: F401
from loans.models import Loan, LoanTransaction, InterestDistribution  # noqa: F401
from savings.models import Savings, SavingsTransaction  # noqa: F401
from audit.models import AuditLog  # noqa: F401

# Blueprints
from users.routes import users_bp
from members.routes import members_bp
from groups.routes import groups_bp
from cycles.routes import cycles_bp
from loans.routes import loans_bp
from savings.routes import savings_bp
from audit.routes import audit_bp

logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # ✅ Enable CORS with credentials so cookies work
    CORS(app, supports_credentials=True)

    # ✅ Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    # ✅ Register Blueprints
    app.register_blueprint(users_bp)
    app.register_blueprint(members_bp)
    app.register_blueprint(groups_bp)
    app.register_blueprint(cycles_bp)
    app.register_blueprint(loans_bp)
    app.register_blueprint(savings_bp)
    app.register_blueprint(audit_bp)

    # ✅ JWT failures never reach domain code
    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"error": "Unauthorized"}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"error": "Unauthorized"}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"error": "Unauthorized"}), 401

    # ✅ Error handlers
    @app.errorhandler(LedgerError)
    def ledger_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Route not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        logger.exception("Unhandled error: %s", getattr(error, "original_exception", error))
        return jsonify({"error": "Internal server error"}), 500

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok", "interest_policy": app.config["INTEREST_POLICY"]}), 200

    @app.cli.command("bootstrap-admin")
    @click.option("--email", default=None, help="Defaults to BOOTSTRAP_ADMIN_EMAIL")
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option("--name", default="Administrator")
    def bootstrap_admin(email, password, name):
        """Create the first ADMIN login. Does nothing once an admin exists."""
        email = (email or app.config.get("BOOTSTRAP_ADMIN_EMAIL") or "").strip().lower()
        if not email:
            raise click.UsageError("No email given and BOOTSTRAP_ADMIN_EMAIL is not set")
        if User.query.filter_by(role=ROLE_ADMIN).first():
            click.echo("An admin already exists; nothing to do.")
            return
        if User.query.filter_by(email=email).first():
            raise click.UsageError(f"{email} is already registered")
        admin = User(email=email, name=name, role=ROLE_ADMIN)
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        logger.info("bootstrap admin %s created", email)
        click.echo(f"✅ Admin {email} created")

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 10000)), debug=True)
