import logging

from flask import Flask

from .config import Config


def configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("loandesk").setLevel(level)
    app.logger.setLevel(level)


def create_app(config_object=Config, store=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.sort_keys = False
    configure_logging(app)

    from .store import init_store
    store = init_store(app, store)
    if app.config.get("SEED_DEMO_DATA") and not any(store.counts().values()):
        from .seed import seed_demo
        seed_demo(store, app.config["DEMO_PASSWORD"])

    from .errors import register_error_handlers
    register_error_handlers(app)

    from .admin import admin_api_bp
    from .auth import auth_bp
    from .core import core_bp
    from .finance import finance_bp
    from .notification import notification_bp
    from .reports import reports_bp
    from .staff import staff_api_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(core_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(admin_api_bp)
    app.register_blueprint(staff_api_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(reports_bp)

    from .cli import register_cli
    register_cli(app)

    return app
