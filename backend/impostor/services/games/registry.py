"""Live session tables and the effects that follow each transition.

The registry owns every live session, the identity -> room code index and
the connection -> identity map. All work runs under one re-entrant lock,
so actions and timer expiries are applied one at a time in arrival order.

After each successful transition the registry syncs the session's timers
to its new phase, hands finished games to the persistence sink and calls
the ``on_state`` listener so the transport can push fresh snapshots.
"""

import itertools
import logging
import random
import threading
import time
from functools import partial
from typing import Callable, Dict, Optional

from . import machine
from .actions import (
    Action,
    CreateSession,
    DiscussionExpired,
    ErrorCode,
    GuessExpired,
    JoinSession,
    Leave,
    Result,
    StartGame,
    TurnExpired,
    WatchSession,
)
from .persistence import NullSink, build_game_record, build_score_rows
from .scheduler import DISCUSSION, GUESS, TURN, SessionTimers, disconnect_key
from .state import Phase, Session

CONSONANTS = 'BCDFGHJKLMNPRSTV'
VOWELS = 'AEIOU'
CODE_ATTEMPTS = 100


class SessionRegistry:
    def __init__(self, scheduler, sink=None, logger: Optional[logging.Logger] = None,
                 clock: Callable[[], float] = time.time, rng: Optional[random.Random] = None,
                 grace_sec: float = 120, guess_sec: float = 15):
        self._scheduler = scheduler
        self._sink = sink or NullSink()
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._rng = rng or random.Random()
        self.grace_sec = grace_sec
        self.guess_sec = guess_sec
        self._lock = threading.RLock()
        self._sessions: Dict[str, Session] = {}
        self._index: Dict[str, str] = {}
        self._connections: Dict[str, str] = {}
        self._on_state: Callable[[Session], None] = lambda session: None
        self._on_ended: Callable[[Session], None] = lambda session: None

    def listen(self, on_state: Callable[[Session], None], on_ended: Callable[[Session], None]) -> None:
        self._on_state = on_state
        self._on_ended = on_ended

    # ---- lookups ----

    def get(self, code: Optional[str]) -> Optional[Session]:
        if not code:
            return None
        return self._sessions.get(code.strip().upper())

    def find_by_participant(self, participant_id: Optional[str]) -> Optional[Session]:
        code = self._index.get(participant_id) if participant_id else None
        return self._sessions.get(code) if code else None

    def identity_for(self, connection_id: str) -> Optional[str]:
        return self._connections.get(connection_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def generate_code(self) -> Optional[str]:
        """Four letters alternating consonant/vowel, e.g. ``BAKO``.

        Random draws first; once those keep colliding, the first free code in
        order. None when every code is live.
        """
        for _ in range(CODE_ATTEMPTS):
            code = ''.join(
                self._rng.choice(CONSONANTS if i % 2 == 0 else VOWELS) for i in range(4)
            )
            if code not in self._sessions:
                return code
        for letters in itertools.product(CONSONANTS, VOWELS, CONSONANTS, VOWELS):
            code = ''.join(letters)
            if code not in self._sessions:
                return code
        return None

    # ---- actions ----

    def dispatch(self, actor_id: Optional[str], action: Action) -> Result:
        """Apply a participant action to the session it targets."""
        if not actor_id:
            return Result.reject(ErrorCode.NOT_AUTHENTICATED)
        with self._lock:
            if isinstance(action, CreateSession):
                return self._create(actor_id, action)
            if isinstance(action, (JoinSession, WatchSession)):
                return self._join(actor_id, action)
            session = self.find_by_participant(actor_id)
            if session is None:
                return Result.reject(ErrorCode.ROOM_NOT_FOUND)
            return self._run(session, actor_id, action)

    def _create(self, actor_id: str, action: CreateSession) -> Result:
        code = self.generate_code()
        if code is None:
            return Result.reject(ErrorCode.SERVER_FULL)
        session = Session(code=code, created_at=self._clock())
        result = machine.apply(session, actor_id, action, self._clock(), self._rng)
        if not result.ok:
            return result
        self._leave_current(actor_id)
        session.timers = SessionTimers(session.code, self._scheduler, lock=self._lock,
                                       clock=self._clock, logger=self._logger)
        self._sessions[session.code] = session
        self._index[actor_id] = session.code
        self._bind(action.connection_id, actor_id)
        self._logger.info(f"[session-create] session={session.code} host={actor_id}")
        self._on_state(session)
        return result

    def _join(self, actor_id: str, action) -> Result:
        session = self.get(action.code)
        if session is None:
            return Result.reject(ErrorCode.ROOM_NOT_FOUND)
        if session.find(actor_id) is not None:
            # Same identity coming back through the join screen.
            self._reconnect(session, actor_id, action.connection_id)
            return Result(session=session)
        current = self.find_by_participant(actor_id)
        result = machine.apply(session, actor_id, action, self._clock(), self._rng)
        if not result.ok:
            return result
        if current is not None:
            self._leave_current(actor_id)
        self._index[actor_id] = session.code
        self._bind(action.connection_id, actor_id)
        self._on_state(session)
        return result

    def _leave_current(self, actor_id: str) -> None:
        session = self.find_by_participant(actor_id)
        if session is not None:
            self._run(session, actor_id, Leave())

    def _run(self, session: Session, actor_id: Optional[str], action: Action) -> Result:
        result = machine.apply(session, actor_id, action, self._clock(), self._rng)
        if result.ok:
            self._commit(session, action, result)
        return result

    def _commit(self, session: Session, action: Action, result: Result) -> None:
        if result.removed_id:
            self._forget(session, result.removed_id)
        if result.settled:
            self._persist_results(session)
        if result.ended:
            self._destroy(session)
            return
        if isinstance(action, StartGame) and session.session_id is None:
            self._sink.create_session(session.code, partial(self._attach_record, session.code))
        self.sync_timers(session)
        self._on_state(session)

    def _forget(self, session: Session, participant_id: str) -> None:
        if self._index.get(participant_id) == session.code:
            del self._index[participant_id]
        for connection_id, pid in list(self._connections.items()):
            if pid == participant_id:
                del self._connections[connection_id]
        if session.timers is not None:
            session.timers.cancel(disconnect_key(participant_id))

    def _destroy(self, session: Session) -> None:
        if session.timers is not None:
            session.timers.cancel_all()
        for p in session.participants:
            if self._index.get(p.id) == session.code:
                del self._index[p.id]
        self._sessions.pop(session.code, None)
        if session.session_id is not None:
            self._sink.end_session(session.session_id, session.session_round)
        self._logger.info(f"[session-end] session={session.code}")
        self._on_ended(session)

    def shutdown(self) -> None:
        with self._lock:
            for session in list(self._sessions.values()):
                if session.timers is not None:
                    session.timers.cancel_all()
            self._sessions.clear()
            self._index.clear()
            self._connections.clear()

    # ---- persistence ----

    def _attach_record(self, code: str, record_id: int) -> None:
        with self._lock:
            session = self._sessions.get(code)
            if session is not None and session.session_id is None:
                session.session_id = record_id

    def _persist_results(self, session: Session) -> None:
        self._logger.info(f"[results] session={session.code} winner={session.winning_team}")
        self._sink.save_game(build_game_record(session))
        if session.session_id is not None:
            self._sink.save_scores(session.session_id, build_score_rows(session), session.session_round)

    # ---- timers ----

    def sync_timers(self, session: Session) -> None:
        """Arm or cancel the phase timers so they match the session's phase.

        Tags identify what a timer was armed for; a timer is only re-armed
        when the thing it counts down (a turn, a guess, a discussion) changes.
        """
        timers = session.timers
        if timers is None:
            return
        now = self._clock()

        wants_turn = (
            session.phase is Phase.CLUES
            and session.settings.clue_timer > 0
            and not session.round_complete()
        )
        if wants_turn:
            # Holder id included: a leaver's successor can inherit the same index.
            tag = (session.session_round, session.round, session.turn_index, session.current_turn().id)
            if timers.tag(TURN) != tag:
                session.turn_deadline = timers.arm(
                    TURN, session.settings.clue_timer, partial(self._expire, session.code, TurnExpired()), tag=tag,
                )
        else:
            timers.cancel(TURN)
            session.turn_deadline = None

        if session.phase is Phase.IMPOSTOR_GUESS:
            tag = (session.session_round, session.round)
            if timers.tag(GUESS) != tag:
                session.guess_deadline = timers.arm(
                    GUESS, self.guess_sec, partial(self._expire, session.code, GuessExpired()), tag=tag,
                )
        else:
            timers.cancel(GUESS)
            session.guess_deadline = None

        if session.phase is Phase.DISCUSSION and session.discussion_deadline is not None:
            tag = (session.session_round, session.round)
            if timers.tag(DISCUSSION) != tag:
                delay = max(0.0, session.discussion_deadline - now)
                session.discussion_deadline = timers.arm(
                    DISCUSSION, delay, partial(self._expire, session.code, DiscussionExpired()), tag=tag,
                )
        else:
            timers.cancel(DISCUSSION)
            session.discussion_deadline = None

    def _expire(self, code: str, action: Action) -> None:
        session = self._sessions.get(code)
        if session is None:
            return
        result = self._run(session, None, action)
        if not result.ok:
            self._logger.info(f"[timer-abort] session={code} action={type(action).__name__} error={result.error.value}")

    # ---- connections ----

    def _bind(self, connection_id: Optional[str], participant_id: str) -> None:
        if connection_id:
            self._connections[connection_id] = participant_id

    def authenticate(self, participant_id: str, connection_id: str) -> Optional[Session]:
        """Associate a connection with a persistent identity; restores a reserved seat."""
        with self._lock:
            self._bind(connection_id, participant_id)
            session = self.find_by_participant(participant_id)
            if session is None:
                return None
            self._reconnect(session, participant_id, connection_id)
            return session

    def _reconnect(self, session: Session, participant_id: str, connection_id: Optional[str]) -> None:
        participant = session.find(participant_id)
        if participant is None:
            return
        if participant.connection_id and participant.connection_id != connection_id:
            self._connections.pop(participant.connection_id, None)
        participant.connection_id = connection_id
        participant.disconnected_at = None
        self._bind(connection_id, participant_id)
        if session.timers is not None and session.timers.cancel(disconnect_key(participant_id)):
            self._logger.info(f"[reconnect] session={session.code} player={participant_id}")
        self._on_state(session)

    def disconnect(self, connection_id: str) -> Optional[Session]:
        """Mark the participant on this connection as away and reserve their seat."""
        with self._lock:
            participant_id = self._connections.pop(connection_id, None)
            session = self.find_by_participant(participant_id)
            if session is None:
                return None
            participant = session.find(participant_id)
            if participant is None or participant.connection_id != connection_id:
                return None
            participant.connection_id = None
            participant.disconnected_at = self._clock()
            session.timers.arm(
                disconnect_key(participant_id), self.grace_sec,
                partial(self._grace_expired, session.code, participant_id),
            )
            self._logger.info(
                f"[grace-start] session={session.code} player={participant_id} grace={self.grace_sec}s"
            )
            self._on_state(session)
            return session

    def _grace_expired(self, code: str, participant_id: str) -> None:
        session = self._sessions.get(code)
        if session is None:
            return
        self._logger.info(f"[grace-expire] session={code} player={participant_id}")
        self._run(session, participant_id, Leave())
