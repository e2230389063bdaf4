import os
import random
import sys
import pytest

# Ensure the backend root (containing the `impostor` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from impostor import create_app, db, socketio
from impostor.services.games.actions import CreateSession, JoinSession, MarkRoleReady, SetWord, StartGame, UpdateSettings
from impostor.services.games.machine import apply
from impostor.services.games.registry import SessionRegistry
from impostor.services.games.scheduler import DeferredScheduler
from impostor.services.games.state import Session


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    PERSIST_RESULTS = True
    DISCONNECT_GRACE_SEC = 120
    GUESS_DURATION_SEC = 15
    ENABLE_SCHEDULER_IN_TESTS = False


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FixedChoice:
    """rng stand-in: always picks the participant with ``pick_id``; anything else is seeded-random."""

    def __init__(self, pick_id=None, seed=0):
        self.pick_id = pick_id
        self._fallback = random.Random(seed)

    def choice(self, seq):
        for item in seq:
            if getattr(item, 'id', None) == self.pick_id:
                return item
        return self._fallback.choice(seq)


class RecordingSink:
    def __init__(self, record_id=41):
        self.record_id = record_id
        self.calls = []

    def create_session(self, room_code, on_created):
        self.calls.append(('create_session', room_code))
        on_created(self.record_id)

    def save_scores(self, session_id, scores, total_rounds):
        self.calls.append(('save_scores', session_id, len(scores)))

    def end_session(self, session_id, total_rounds):
        self.calls.append(('end_session', session_id))

    def save_game(self, record):
        self.calls.append(('save_game', record['code'], record['winning_team']))

    def named(self, name):
        return [c for c in self.calls if c[0] == name]


NAMES = ('Ana', 'Beto', 'Caro', 'Dani')


@pytest.fixture()
def new_session():
    """Lobby with the given players; the first name is the host. ids are the lowercased names."""
    def factory(names=NAMES, **settings):
        session = Session(code='BAKO', created_at=0.0)
        host, *rest = names
        assert apply(session, host.lower(), CreateSession(host, f'sid-{host.lower()}'), 0.0).ok
        for name in rest:
            assert apply(session, name.lower(), JoinSession('BAKO', name, f'sid-{name.lower()}'), 0.0).ok
        if settings:
            assert apply(session, host.lower(), UpdateSettings(settings), 0.0).ok
        return session
    return factory


@pytest.fixture()
def to_clues():
    """Start the game, set the word with a chosen impostor and have everyone ready up."""
    def advance(session, impostor, word='banana', now=0.0):
        host = session.host_id
        assert apply(session, host, StartGame(), now).ok
        assert apply(session, host, SetWord(word), now, FixedChoice(impostor)).ok
        for p in session.players():
            assert apply(session, p.id, MarkRoleReady(), now).ok
        return session
    return advance


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def make_registry(clock, sink):
    """Registry on a deferred scheduler; returns (registry, scheduler, session) with a seated lobby."""
    def factory(names=NAMES, impostor=None, **settings):
        scheduler = DeferredScheduler()
        registry = SessionRegistry(scheduler, sink=sink, clock=clock, rng=FixedChoice(impostor))
        host, *rest = names
        result = registry.dispatch(host.lower(), CreateSession(host, f'sid-{host.lower()}'))
        assert result.ok
        code = result.session.code
        for name in rest:
            assert registry.dispatch(name.lower(), JoinSession(code, name, f'sid-{name.lower()}')).ok
        if settings:
            assert registry.dispatch(host.lower(), UpdateSettings(settings)).ok
        return registry, scheduler, result.session
    return factory


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        db.create_all()
        yield application
        application.extensions['session_registry'].shutdown()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def registry(flask_app):
    return flask_app.extensions['session_registry']


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
