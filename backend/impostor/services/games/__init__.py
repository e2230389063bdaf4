"""Game domain services: state machine, timers, views and scoring.

This package contains the session logic that socket handlers and HTTP
routes call into, keeping transport concerns separated from core game
mechanics.
"""

from .actions import ErrorCode, Result
from .registry import SessionRegistry
from .scheduler import DeferredScheduler
from .state import Phase, Session

__all__ = ['ErrorCode', 'Result', 'SessionRegistry', 'DeferredScheduler', 'Phase', 'Session']
