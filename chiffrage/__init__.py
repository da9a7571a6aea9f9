import os
import logging
from flask import Flask, jsonify, redirect, url_for
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from dotenv import load_dotenv

from .config import CONFIGS, ProdConfig

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()


def create_app(config_name: str | None = None) -> Flask:
    """Application factory with environment based configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)
    os.makedirs(app.instance_path, exist_ok=True)

    # Pick configuration
    env = config_name or os.getenv('ENV') or os.getenv('FLASK_ENV') or 'production'
    app.config.from_object(CONFIGS.get(env, ProdConfig))

    # Initialise logging
    logging.basicConfig(level=logging.DEBUG if app.debug else logging.INFO)

    db.init_app(app)
    migrate.init_app(app, db)

    # Ensure models loaded so tables can be created
    from chiffrage import models  # noqa
    with app.app_context():
        db.create_all()

    @app.route('/')
    def index():
        return redirect(url_for('quotes.list_quotes'))

    from chiffrage.errors import register_error_handlers
    register_error_handlers(app)

    @app.errorhandler(404)
    def not_found(_):
        return jsonify(error='Not found'), 404

    from chiffrage.clients.routes import bp as clients_bp
    from chiffrage.quotes.routes import bp as quotes_bp
    from chiffrage.dashboard import bp as dashboard_bp
    from chiffrage.cli import quotes_cli

    app.register_blueprint(clients_bp, url_prefix='/clients')
    app.register_blueprint(quotes_bp, url_prefix='/quotes')
    app.register_blueprint(dashboard_bp, url_prefix='/dashboard')
    app.cli.add_command(quotes_cli)

    return app
