"""Session state machine.

``apply(session, actor_id, action, now)`` checks an action against the
current phase and roster, mutates the session in place and returns a
``Result``. Every check runs before the first mutation, so a rejected
action leaves the session exactly as it was.

Timer expiries go through the same function (with ``actor_id=None``) so a
skipped turn and a submitted clue advance the game by identical code.
"""

import random
from collections import Counter
from typing import Callable, Dict, Optional, Type

from . import scoring
from .actions import (
    Action,
    CastVote,
    ContinueAfterElimination,
    ConvertToPlayer,
    CreateSession,
    DiscussionExpired,
    EndDiscussion,
    EndSession,
    ErrorCode,
    GuessExpired,
    GuessWord,
    JoinSession,
    Leave,
    MarkRoleReady,
    NextRound,
    PlayAgain,
    Result,
    RevealImpostor,
    SendMessage,
    SetMode,
    SetWord,
    SkipTurn,
    StartGame,
    StartVoting,
    SubmitClue,
    TransferHost,
    TurnExpired,
    UpdateSettings,
    WatchSession,
)
from .content import pick_avatar, pick_color
from .state import (
    CHAT_HISTORY_LIMIT,
    CLUE_TIMER_CHOICES,
    DISCUSSION_TIMER_CHOICES,
    IDLE_PHASES,
    LANGUAGES,
    MAX_MESSAGE_LENGTH,
    MAX_NAME_LENGTH,
    MAX_PARTICIPANTS,
    MAX_ROUNDS_CHOICES,
    MESSAGE_INTERVAL_SEC,
    MIN_PLAYERS,
    MODES,
    THEMES,
    VOTING_STYLES,
    ChatMessage,
    Elimination,
    Participant,
    Phase,
    Session,
)


Handler = Callable[[Session, Optional[str], Action, float, random.Random], Result]


def apply(session: Session, actor_id: Optional[str], action: Action, now: float, rng=random) -> Result:
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f'unsupported action: {type(action).__name__}')
    return handler(session, actor_id, action, now, rng)


# ---- shared helpers ----

def _ok(session: Session, **kwargs) -> Result:
    return Result(session=session, **kwargs)


def _guard(session: Session, actor_id: Optional[str], phase: Optional[Phase] = None,
           host: bool = False) -> Optional[ErrorCode]:
    if host and (actor_id is None or session.host_id != actor_id):
        return ErrorCode.NOT_HOST
    if phase is not None and session.phase is not phase:
        return ErrorCode.WRONG_PHASE
    return None


def _enter_results(session: Session, **kwargs) -> Result:
    session.phase = Phase.RESULTS
    settled = scoring.settle(session) is not None
    return _ok(session, settled=settled, **kwargs)


def snapshot_clues(session: Session) -> None:
    """Append the current round's clue map to the history, once per round."""
    if session.clues_snapshotted:
        return
    session.clues_snapshotted = True
    current = {p.id: p.clue for p in session.active_players() if p.clue is not None}
    if current:
        session.clue_history.append(current)


def snapshot_votes(session: Session) -> None:
    if session.votes:
        session.vote_history.append(dict(session.votes))


def _clear_clues(session: Session) -> None:
    for p in session.players():
        p.clue = None
    session.clues_snapshotted = False


def _reset_round(session: Session) -> None:
    session.votes = {}
    session.round = 1
    session.turn_index = 0
    session.turn_deadline = None
    session.impostor_guess = None
    session.impostor_guess_correct = None
    session.impostor_caught = False
    session.guess_deadline = None
    session.elimination_history = []
    session.last_eliminated_id = None
    session.clue_history = []
    session.clues_snapshotted = False
    session.vote_history = []
    session.messages = []
    session.discussion_deadline = None
    session.winning_team = None
    session.results_settled = False
    for p in session.players():
        p.reset_round()


def _promote_host(session: Session) -> None:
    if not session.participants:
        session.host_id = None
        return
    successor = next((p for p in session.participants if not p.is_spectator), session.participants[0])
    for p in session.participants:
        p.is_host = p is successor
    session.host_id = successor.id


def _player_guard(session: Session, actor_id: Optional[str]):
    """Resolve the acting participant and reject spectators."""
    participant = session.find(actor_id)
    if participant is None:
        return None, ErrorCode.PLAYER_NOT_FOUND
    if participant.is_spectator:
        return None, ErrorCode.SPECTATOR_CANNOT_ACT
    return participant, None


# ---- roster ----

def _seat(session: Session, actor_id: str, name: str, connection_id: Optional[str],
          avatar: Optional[str], spectator: bool = False, host: bool = False) -> Result:
    name = (name or '').strip()
    if not name:
        return Result.reject(ErrorCode.NAME_REQUIRED)
    if len(name) > MAX_NAME_LENGTH:
        return Result.reject(ErrorCode.NAME_TOO_LONG)
    if session.find(actor_id) is not None:
        return Result.reject(ErrorCode.ALREADY_PLAYER)
    if session.name_taken(name):
        return Result.reject(ErrorCode.NAME_TAKEN)
    if len(session.participants) >= MAX_PARTICIPANTS:
        return Result.reject(ErrorCode.ROOM_FULL)

    participant = Participant(
        id=actor_id,
        name=name,
        avatar=pick_avatar({p.avatar for p in session.participants}, avatar),
        color=pick_color({p.color for p in session.participants}),
        connection_id=connection_id,
        is_host=host,
        is_spectator=spectator,
    )
    session.participants.append(participant)
    if host:
        session.host_id = actor_id
    return _ok(session)


def _create(session, actor_id, action: CreateSession, now, rng) -> Result:
    if session.participants:
        return Result.reject(ErrorCode.WRONG_PHASE)
    return _seat(session, actor_id, action.name, action.connection_id, action.avatar, host=True)


def _join(session, actor_id, action: JoinSession, now, rng) -> Result:
    if session.phase is not Phase.LOBBY:
        return Result.reject(ErrorCode.WRONG_PHASE)
    return _seat(session, actor_id, action.name, action.connection_id, action.avatar)


def _watch(session, actor_id, action: WatchSession, now, rng) -> Result:
    return _seat(session, actor_id, action.name, action.connection_id, action.avatar, spectator=True)


def _convert_to_player(session, actor_id, action, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.LOBBY)
    if error:
        return Result.reject(error)
    participant = session.find(actor_id)
    if participant is None:
        return Result.reject(ErrorCode.PLAYER_NOT_FOUND)
    if not participant.is_spectator:
        return Result.reject(ErrorCode.ALREADY_PLAYER)
    if len(session.players()) >= MAX_PARTICIPANTS:
        return Result.reject(ErrorCode.ROOM_FULL)
    participant.is_spectator = False
    return _ok(session)


def remove_participant(session: Session, participant_id: str) -> Result:
    """Drop a participant (explicit leave or grace expiry) and repair the session."""
    leaving = session.find(participant_id)
    if leaving is None:
        return Result.reject(ErrorCode.PLAYER_NOT_FOUND)

    active_before = session.active_players()
    position = active_before.index(leaving) if leaving in active_before else None

    session.participants.remove(leaving)
    if not session.participants:
        session.host_id = None
        return _ok(session, ended=True, removed_id=participant_id)

    if session.host_id == participant_id:
        _promote_host(session)

    if session.phase is Phase.VOTING:
        session.votes.pop(participant_id, None)
        session.votes = {voter: target for voter, target in session.votes.items() if target != participant_id}

    if leaving.is_spectator:
        return _ok(session, removed_id=participant_id)

    if session.phase not in IDLE_PHASES:
        if participant_id == session.impostor_id:
            return _enter_results(session, removed_id=participant_id)
        playable = session.active_players() if session.settings.elimination else session.players()
        if len(playable) < MIN_PLAYERS:
            return _enter_results(session, removed_id=participant_id)

    if session.phase is Phase.CLUES:
        if position is not None and position < session.turn_index:
            session.turn_index -= 1
        session.turn_index = min(session.turn_index, len(session.active_players()))
    elif session.phase is Phase.REVEAL:
        if all(p.has_seen_role for p in session.players()):
            session.phase = Phase.PLAYING if session.mode == 'local' else Phase.CLUES
    elif session.phase is Phase.VOTING and _everyone_voted(session):
        result = _resolve_votes(session)
        result.removed_id = participant_id
        return result

    return _ok(session, removed_id=participant_id)


def _leave(session, actor_id, action, now, rng) -> Result:
    return remove_participant(session, actor_id)


def _end(session, actor_id, action, now, rng) -> Result:
    error = _guard(session, actor_id, host=True)
    if error:
        return Result.reject(error)
    return _ok(session, ended=True)


# ---- lobby ----

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


SETTING_RULES: Dict[str, Callable[[object], bool]] = {
    'language': lambda v: v in LANGUAGES,
    'elimination': lambda v: isinstance(v, bool),
    'clue_timer': lambda v: _is_int(v) and v in CLUE_TIMER_CHOICES,
    'voting_style': lambda v: v in VOTING_STYLES,
    'max_rounds': lambda v: _is_int(v) and v in MAX_ROUNDS_CHOICES,
    'allow_skip': lambda v: isinstance(v, bool),
    'discussion_timer': lambda v: _is_int(v) and v in DISCUSSION_TIMER_CHOICES,
    'theme': lambda v: v in THEMES,
}


def _set_mode(session, actor_id, action: SetMode, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.LOBBY, host=True)
    if error:
        return Result.reject(error)
    if action.mode not in MODES:
        return Result.reject(ErrorCode.INVALID_SETTING)
    session.mode = action.mode
    return _ok(session)


def _update_settings(session, actor_id, action: UpdateSettings, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.LOBBY, host=True)
    if error:
        return Result.reject(error)
    changes = {k: v for k, v in (action.changes or {}).items() if k in SETTING_RULES}
    for key, value in changes.items():
        if not SETTING_RULES[key](value):
            return Result.reject(ErrorCode.INVALID_SETTING)
    for key, value in changes.items():
        setattr(session.settings, key, value)
    return _ok(session)


def _start(session, actor_id, action, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.LOBBY, host=True)
    if error:
        return Result.reject(error)
    if len(session.players()) < MIN_PLAYERS:
        return Result.reject(ErrorCode.NOT_ENOUGH_PLAYERS)
    session.phase = Phase.SETUP
    scoring.merge_ledger(session)
    return _ok(session)


# ---- round setup ----

def _set_word(session, actor_id, action: SetWord, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.SETUP, host=True)
    if error:
        return Result.reject(error)
    word = (action.word or '').strip()
    if not word:
        return Result.reject(ErrorCode.EMPTY_WORD)
    # The host chose the word, so the impostor comes from everyone else.
    candidates = [p for p in session.players() if p.id != actor_id]
    if not candidates:
        return Result.reject(ErrorCode.NOT_ENOUGH_PLAYERS)

    _reset_round(session)
    session.secret_word = word
    session.word_category = (action.category or '').strip() or None
    session.impostor_id = rng.choice(candidates).id
    session.session_round += 1
    session.phase = Phase.REVEAL
    return _ok(session)


def _mark_role_ready(session, actor_id, action, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.REVEAL)
    if error:
        return Result.reject(error)
    participant, error = _player_guard(session, actor_id)
    if error:
        return Result.reject(error)
    participant.has_seen_role = True
    if all(p.has_seen_role for p in session.players()):
        session.phase = Phase.PLAYING if session.mode == 'local' else Phase.CLUES
    return _ok(session)


def _transfer_host(session, actor_id, action: TransferHost, now, rng) -> Result:
    error = _guard(session, actor_id, host=True)
    if error:
        return Result.reject(error)
    new_host = session.find(action.new_host_id)
    if new_host is None:
        return Result.reject(ErrorCode.PLAYER_NOT_FOUND)
    if new_host.is_spectator:
        return Result.reject(ErrorCode.CANNOT_TRANSFER_TO_SPECTATOR)

    for p in session.participants:
        p.is_host = p is new_host
    session.host_id = new_host.id
    _reset_round(session)
    session.secret_word = None
    session.word_category = None
    session.impostor_id = None
    session.phase = Phase.SETUP
    return _ok(session)


def _play_again(session, actor_id, action, now, rng) -> Result:
    error = _guard(session, actor_id, host=True)
    if error:
        return Result.reject(error)
    _reset_round(session)
    session.secret_word = None
    session.word_category = None
    session.impostor_id = None
    session.last_round_deltas = []
    for p in session.players():
        p.last_message_at = None
    session.phase = Phase.SETUP
    scoring.merge_ledger(session)
    return _ok(session)


# ---- clues ----

def _advance_turn(session: Session) -> None:
    if session.turn_index < len(session.active_players()):
        session.turn_index += 1
    session.turn_deadline = None


def _next_round(session: Session) -> None:
    snapshot_clues(session)
    session.round += 1
    session.turn_index = 0
    session.turn_deadline = None
    _clear_clues(session)


def _start_voting(session: Session, now: float) -> None:
    snapshot_clues(session)
    session.turn_deadline = None
    if session.mode == 'online' and session.settings.discussion_timer > 0:
        session.phase = Phase.DISCUSSION
        session.messages = []
        session.discussion_deadline = now + session.settings.discussion_timer
    else:
        _open_voting(session)


def _open_voting(session: Session) -> None:
    session.phase = Phase.VOTING
    session.votes = {}
    session.discussion_deadline = None


def _turn_holder_guard(session: Session, actor_id: Optional[str]):
    participant, error = _player_guard(session, actor_id)
    if error:
        return None, error
    if participant.is_eliminated:
        return None, ErrorCode.ELIMINATED_CANNOT_ACT
    current = session.current_turn()
    if current is None or current.id != participant.id:
        return None, ErrorCode.NOT_YOUR_TURN
    return participant, None


def _submit_clue(session, actor_id, action: SubmitClue, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.CLUES)
    if error:
        return Result.reject(error)
    participant, error = _turn_holder_guard(session, actor_id)
    if error:
        return Result.reject(error)
    clue = (action.clue or '').strip()
    if not clue:
        return Result.reject(ErrorCode.EMPTY_CLUE)
    participant.clue = clue
    _advance_turn(session)
    return _ok(session)


def _skip_turn(session, actor_id, action, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.CLUES)
    if error:
        return Result.reject(error)
    if not session.settings.allow_skip:
        return Result.reject(ErrorCode.SKIP_NOT_ALLOWED)
    if actor_id != session.host_id:
        _, error = _turn_holder_guard(session, actor_id)
        if error:
            return Result.reject(error)
    if session.round_complete():
        return Result.reject(ErrorCode.NOT_YOUR_TURN)
    _advance_turn(session)
    return _ok(session)


def _turn_expired(session, actor_id, action, now, rng) -> Result:
    if session.phase is not Phase.CLUES:
        return Result.reject(ErrorCode.WRONG_PHASE)
    _advance_turn(session)
    if session.round_complete():
        if session.round < session.settings.max_rounds:
            _next_round(session)
        else:
            _start_voting(session, now)
    return _ok(session)


def _host_next_round(session, actor_id, action, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.CLUES, host=True)
    if error:
        return Result.reject(error)
    _next_round(session)
    return _ok(session)


def _host_start_voting(session, actor_id, action, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.CLUES, host=True)
    if error:
        return Result.reject(error)
    _start_voting(session, now)
    return _ok(session)


# ---- discussion ----

def _end_discussion(session, actor_id, action, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.DISCUSSION, host=True)
    if error:
        return Result.reject(error)
    _open_voting(session)
    return _ok(session)


def _discussion_expired(session, actor_id, action, now, rng) -> Result:
    if session.phase is not Phase.DISCUSSION:
        return Result.reject(ErrorCode.WRONG_PHASE)
    _open_voting(session)
    return _ok(session)


def _send_message(session, actor_id, action: SendMessage, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.DISCUSSION)
    if error:
        return Result.reject(error)
    participant, error = _player_guard(session, actor_id)
    if error:
        return Result.reject(error)
    text = (action.text or '').strip()
    if not text:
        return Result.reject(ErrorCode.EMPTY_MESSAGE)
    if len(text) > MAX_MESSAGE_LENGTH:
        return Result.reject(ErrorCode.MESSAGE_TOO_LONG)
    last = participant.last_message_at
    if last is not None and now - last < MESSAGE_INTERVAL_SEC:
        return Result.reject(ErrorCode.RATE_LIMITED)

    participant.last_message_at = now
    session.messages.append(ChatMessage(
        player_id=participant.id,
        player_name=participant.name,
        avatar=participant.avatar,
        text=text,
        timestamp=now,
    ))
    del session.messages[:-CHAT_HISTORY_LIMIT]
    return _ok(session)


# ---- voting ----

def _everyone_voted(session: Session) -> bool:
    active = session.active_players()
    return bool(active) and all(p.id in session.votes for p in active)


def _resolve_votes(session: Session) -> Result:
    counts = Counter(session.votes.values())
    top = max(counts.values()) if counts else 0

    if session.settings.elimination and session.mode == 'online':
        leaders = [pid for pid, count in counts.items() if count == top]
        if len(leaders) == 1:
            eliminated = session.find(leaders[0])
            eliminated.is_eliminated = True
            session.last_eliminated_id = eliminated.id
            session.elimination_history.append(Elimination(round=session.round, participant_id=eliminated.id))
            if eliminated.id == session.impostor_id:
                session.phase = Phase.IMPOSTOR_GUESS
                session.impostor_caught = True
                session.impostor_guess = None
                session.impostor_guess_correct = None
                return _ok(session)
        else:
            # Exact tie: nobody leaves this round.
            session.last_eliminated_id = None
        if len(session.active_players()) <= 2:
            # Impostor outlasted the citizens.
            return _enter_results(session)
        session.phase = Phase.ELIMINATION_RESULTS
        return _ok(session)

    # Standard mode: a tie that includes the impostor still catches them.
    impostor_votes = counts.get(session.impostor_id, 0)
    caught = impostor_votes > 0 and impostor_votes >= top
    if caught and session.mode == 'online':
        session.phase = Phase.IMPOSTOR_GUESS
        session.impostor_caught = True
        session.impostor_guess = None
        session.impostor_guess_correct = None
        return _ok(session)
    return _enter_results(session)


def _cast_vote(session, actor_id, action: CastVote, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.VOTING)
    if error:
        return Result.reject(error)
    if actor_id == action.target_id:
        return Result.reject(ErrorCode.CANNOT_VOTE_SELF)
    voter, error = _player_guard(session, actor_id)
    if error:
        return Result.reject(error)
    if voter.is_eliminated:
        return Result.reject(ErrorCode.ELIMINATED_CANNOT_ACT)
    target = session.find(action.target_id)
    if target is None:
        return Result.reject(ErrorCode.TARGET_NOT_FOUND)
    if target.is_spectator:
        return Result.reject(ErrorCode.CANNOT_VOTE_SPECTATOR)
    if target.is_eliminated:
        return Result.reject(ErrorCode.CANNOT_VOTE_ELIMINATED)

    session.votes[voter.id] = target.id
    if _everyone_voted(session):
        return _resolve_votes(session)
    return _ok(session)


# ---- endgame ----

def normalize_word(word: Optional[str]) -> str:
    return (word or '').strip().lower()


def _guess_word(session, actor_id, action: GuessWord, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.IMPOSTOR_GUESS)
    if error:
        return Result.reject(error)
    if actor_id is None or actor_id != session.impostor_id:
        return Result.reject(ErrorCode.NOT_IMPOSTOR)
    session.impostor_guess = (action.guess or '').strip()
    session.impostor_guess_correct = normalize_word(action.guess) == normalize_word(session.secret_word)
    session.guess_deadline = None
    return _enter_results(session)


def _guess_expired(session, actor_id, action, now, rng) -> Result:
    if session.phase is not Phase.IMPOSTOR_GUESS:
        return Result.reject(ErrorCode.WRONG_PHASE)
    session.impostor_guess = None
    session.impostor_guess_correct = False
    session.guess_deadline = None
    return _enter_results(session)


def _reveal_impostor(session, actor_id, action, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.PLAYING, host=True)
    if error:
        return Result.reject(error)
    return _enter_results(session)


def _continue_after_elimination(session, actor_id, action, now, rng) -> Result:
    error = _guard(session, actor_id, Phase.ELIMINATION_RESULTS, host=True)
    if error:
        return Result.reject(error)
    snapshot_clues(session)
    snapshot_votes(session)
    session.round += 1
    session.turn_index = 0
    session.turn_deadline = None
    session.votes = {}
    session.last_eliminated_id = None
    _clear_clues(session)
    session.phase = Phase.CLUES
    return _ok(session)


_HANDLERS: Dict[Type[Action], Handler] = {
    CreateSession: _create,
    JoinSession: _join,
    WatchSession: _watch,
    ConvertToPlayer: _convert_to_player,
    Leave: _leave,
    EndSession: _end,
    SetMode: _set_mode,
    UpdateSettings: _update_settings,
    StartGame: _start,
    SetWord: _set_word,
    MarkRoleReady: _mark_role_ready,
    SubmitClue: _submit_clue,
    SkipTurn: _skip_turn,
    NextRound: _host_next_round,
    StartVoting: _host_start_voting,
    EndDiscussion: _end_discussion,
    SendMessage: _send_message,
    CastVote: _cast_vote,
    GuessWord: _guess_word,
    RevealImpostor: _reveal_impostor,
    TransferHost: _transfer_host,
    ContinueAfterElimination: _continue_after_elimination,
    PlayAgain: _play_again,
    TurnExpired: _turn_expired,
    GuessExpired: _guess_expired,
    DiscussionExpired: _discussion_expired,
}
