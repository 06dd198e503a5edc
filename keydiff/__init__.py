import logging

from flask import Flask

from keydiff.config import Config
from keydiff.session import SessionStore
from keydiff.utils import normalize_override


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.getLogger('keydiff').setLevel(app.config['LOG_LEVEL'])

    # Comparison state lives in memory; the cookie only carries the session id
    app.extensions['keydiff_sessions'] = SessionStore(
        normalize_override(app.config['DEFAULT_DELIMITER']),
        lifetime=app.permanent_session_lifetime,
    )

    from keydiff.routes import main
    app.register_blueprint(main)

    from keydiff.cli import compare_command
    app.cli.add_command(compare_command)

    return app
