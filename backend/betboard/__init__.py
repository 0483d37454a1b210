from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def _split(raw) -> list:
    if not raw:
        return []
    if isinstance(raw, str):
        raw = raw.split(',')
    return [item.strip() for item in raw if item and item.strip()]


def admin_ids_check(raw):
    """Build the ``is_admin`` capability from a configured id list."""
    admin_ids = frozenset(_split(raw))

    def is_admin(user_id) -> bool:
        return user_id in admin_ids

    return is_admin


def create_app(config_class=Config, is_admin=None, clock=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper())

    allowed_origins = _split(flask_app.config.get('CORS_ORIGINS'))
    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from betboard.models import User, utcnow
    from betboard.services.ledger import Ledger, LedgerError, StoreConflict, StoreUnavailable

    # Authorization and time are injected; the ledger never reads the environment
    flask_app.extensions['ledger'] = Ledger(
        is_admin=is_admin or admin_ids_check(flask_app.config.get('ADMIN_IDS')),
        clock=clock or utcnow,
    )

    from betboard.main import main
    flask_app.register_blueprint(main)

    from betboard.auth import auth
    flask_app.register_blueprint(auth, url_prefix='/auth')

    from betboard.api.matches import matches
    flask_app.register_blueprint(matches, url_prefix='/api/matches')

    from betboard.api.predictions import predictions
    flask_app.register_blueprint(predictions, url_prefix='/api/predictions')

    from betboard.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required', 'code': 'unauthenticated'}), 401

    @flask_app.errorhandler(LedgerError)
    def handle_ledger_error(exc):
        if isinstance(exc, StoreUnavailable):
            # Storage details stay in the log
            flask_app.logger.error(
                f"[store] {request.method} {request.path} failed: {exc.message}",
                exc_info=exc.__cause__ or exc,
            )
            return jsonify({'error': 'Service temporarily unavailable', 'code': exc.code}), exc.status_code
        if isinstance(exc, StoreConflict):
            flask_app.logger.warning(f"[store] {request.method} {request.path} conflict: {exc.message}")
        return jsonify({'error': exc.message, 'code': exc.code}), exc.status_code

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from betboard.services.ledger import Identity
        from betboard.services.ledger.matches import create_match
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            ledger = flask_app.extensions['ledger']
            for user_id, name in [('1001', 'testuser1'), ('1002', 'testuser2'), ('1003', 'testuser3')]:
                ledger.record_login(Identity(user_id=user_id, display_name=name))
            create_match('Alpha', 'Bravo', 'BO3')
            create_match('Charlie', 'Delta', 'BO5')
            create_match('Echo', 'Foxtrot', 'YESNO')
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
