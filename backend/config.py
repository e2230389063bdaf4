import os


def _flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Finished games and session scores are written only when a database is configured
    PERSIST_RESULTS = _flag('PERSIST_RESULTS', bool(os.environ.get('DATABASE_URL')))
    # Seat reservation after a dropped connection (seconds)
    DISCONNECT_GRACE_SEC = int(os.environ.get('DISCONNECT_GRACE_SEC', '120'))
    # Time the caught impostor has to guess the word (seconds)
    GUESS_DURATION_SEC = int(os.environ.get('GUESS_DURATION_SEC', '15'))
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            'CORS_ORIGINS',
            'http://localhost:5173,http://127.0.0.1:5173,http://localhost:5174,http://127.0.0.1:5174',
        ).split(',')
        if origin.strip()
    ]
    # Tests drive timers by hand unless this is set
    ENABLE_SCHEDULER_IN_TESTS = _flag('ENABLE_SCHEDULER_IN_TESTS', False)
