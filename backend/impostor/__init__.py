from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or Config.CORS_ORIGINS

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from impostor import models  # noqa: F401
    from impostor.services.games import DeferredScheduler, SessionRegistry
    from impostor.services.games.persistence import NullSink, SqlResultSink

    testing = flask_app.config.get('TESTING', False)
    if testing and not flask_app.config.get('ENABLE_SCHEDULER_IN_TESTS', False):
        scheduler = DeferredScheduler()
    else:
        scheduler = socketio

    if flask_app.config.get('PERSIST_RESULTS', False):
        # Tests write inline so assertions can see the rows right away
        spawn = (lambda task: task()) if testing else socketio.start_background_task
        sink = SqlResultSink(flask_app, spawn, logger=flask_app.logger)
    else:
        sink = NullSink()

    registry = SessionRegistry(
        scheduler,
        sink=sink,
        logger=flask_app.logger,
        grace_sec=flask_app.config.get('DISCONNECT_GRACE_SEC', 120),
        guess_sec=flask_app.config.get('GUESS_DURATION_SEC', 15),
    )
    flask_app.extensions['session_registry'] = registry

    # Import and register blueprints here
    from impostor.main import main
    flask_app.register_blueprint(main)

    from impostor.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    # Register Socket.IO event handlers and route registry notifications to them
    from impostor.socketio_events import register_socketio_handlers
    register_socketio_handlers(registry, testing=testing)

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the results tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
