import logging

import click
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.security import generate_password_hash

from .extensions import db
from .store import EventStore
from .timeline import LayoutConfig

__version__ = "1.0.0"


def create_app(config_class='config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_class)

    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    # Fix for Render (handle reverse proxy headers for HTTPS)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    db.init_app(app)
    app.extensions['event_store'] = EventStore()
    app.extensions['timeline_config'] = LayoutConfig.from_mapping(app.config)

    from .routes import bp as main_bp
    from .admin import bp as admin_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp)

    from .auth import is_admin

    @app.context_processor
    def inject_admin_flag():
        return {"is_admin": is_admin()}

    @app.cli.command("hash-password")
    @click.argument("password")
    def hash_password(password):
        """Print a hash to put in ADMIN_PASSWORD_HASH."""
        click.echo(generate_password_hash(password))

    with app.app_context():
        # Create tables if they don't exist
        db.create_all()

        if app.config.get('SEED_DATABASE', True):
            from .seed_data import seed_database
            seed_database()

    return app
