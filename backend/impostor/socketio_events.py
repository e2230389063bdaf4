from flask import request, session as conn_session
from flask_socketio import emit
from impostor import socketio
from impostor.services.games import actions as act
from impostor.services.games.views import project
from typing import Any, Callable, Dict
import uuid


# Namespace each live connection arrived on, so pushes from timers land on it
_sid_namespace: Dict[str, str] = {}
_registry = None

# Client payloads use camelCase setting names
SETTING_ALIASES = {
    'language': 'language',
    'elimination': 'elimination',
    'clueTimer': 'clue_timer',
    'votingStyle': 'voting_style',
    'maxRounds': 'max_rounds',
    'allowSkip': 'allow_skip',
    'discussionTimer': 'discussion_timer',
    'theme': 'theme',
}


def _get_sid() -> str:
    return request.sid  # type: ignore


def _text(data, key):
    value = (data or {}).get(key)
    return value if isinstance(value, str) else ''


def _settings_changes(data) -> Dict[str, Any]:
    raw = (data or {}).get('settings', data) or {}
    changes = {}
    for key, value in raw.items():
        name = SETTING_ALIASES.get(key, key)
        changes[name] = value
    return changes


# event name -> builder(data, sid) producing the action to dispatch
ACTION_EVENTS: Dict[str, Callable[[Any, str], act.Action]] = {
    'game:create': lambda d, sid: act.CreateSession(_text(d, 'name'), sid, (d or {}).get('avatar')),
    'game:join': lambda d, sid: act.JoinSession(_text(d, 'code'), _text(d, 'name'), sid, (d or {}).get('avatar')),
    'game:watch': lambda d, sid: act.WatchSession(_text(d, 'code'), _text(d, 'name'), sid, (d or {}).get('avatar')),
    'game:setMode': lambda d, sid: act.SetMode(_text(d, 'mode')),
    'game:updateSettings': lambda d, sid: act.UpdateSettings(_settings_changes(d)),
    'game:convertToPlayer': lambda d, sid: act.ConvertToPlayer(),
    'game:start': lambda d, sid: act.StartGame(),
    'game:setWord': lambda d, sid: act.SetWord(_text(d, 'word'), _text(d, 'category') or None),
    'game:roleReady': lambda d, sid: act.MarkRoleReady(),
    'game:submitClue': lambda d, sid: act.SubmitClue(_text(d, 'clue')),
    'game:skipTurn': lambda d, sid: act.SkipTurn(),
    'game:nextRound': lambda d, sid: act.NextRound(),
    'game:startVoting': lambda d, sid: act.StartVoting(),
    'game:endDiscussion': lambda d, sid: act.EndDiscussion(),
    'game:sendMessage': lambda d, sid: act.SendMessage(_text(d, 'text')),
    'game:vote': lambda d, sid: act.CastVote(_text(d, 'target_id') or _text(d, 'targetId')),
    'game:guessWord': lambda d, sid: act.GuessWord(_text(d, 'guess')),
    'game:revealImpostor': lambda d, sid: act.RevealImpostor(),
    'game:transferHost': lambda d, sid: act.TransferHost(_text(d, 'new_host_id') or _text(d, 'newHostId')),
    'game:continueAfterElimination': lambda d, sid: act.ContinueAfterElimination(),
    'game:playAgain': lambda d, sid: act.PlayAgain(),
    'game:leave': lambda d, sid: act.Leave(),
    'game:end': lambda d, sid: act.EndSession(),
}


def handle_connect(auth=None):
    _sid_namespace[_get_sid()] = request.namespace  # type: ignore
    player_id = (auth or {}).get('player_id') if isinstance(auth, dict) else None
    if player_id:
        _authenticate(player_id)
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    sid = _get_sid()
    _registry.disconnect(sid)
    _sid_namespace.pop(sid, None)


def handle_auth(data):
    player_id = _text(data, 'player_id') or _text(data, 'playerId') or str(uuid.uuid4())
    _authenticate(player_id)


def _authenticate(player_id: str) -> None:
    conn_session['player_id'] = player_id
    emit('authenticated', {'player_id': player_id})
    _registry.authenticate(player_id, _get_sid())


def handle_ping(data):
    emit('pong', data or {})


def _make_action_handler(event: str, build: Callable[[Any, str], act.Action]):
    def handler(data=None):
        player_id = conn_session.get('player_id')
        result = _registry.dispatch(player_id, build(data, _get_sid()))
        if not result.ok:
            emit('game:error', {'message': result.error.value, 'event': event})
        elif event == 'game:leave':
            emit('game:left', {})
    handler.__name__ = f"handle_{event.replace(':', '_')}"
    return handler


# ---- registry notifications ----

def push_state(session) -> None:
    """Send every connected participant their own projection of the session."""
    for participant in session.participants:
        sid = participant.connection_id
        if sid is None:
            continue
        socketio.emit(
            'game:state', project(session, participant.id),
            to=sid, namespace=_sid_namespace.get(sid, '/ws'),
        )


def push_ended(session) -> None:
    for participant in session.participants:
        sid = participant.connection_id
        if sid is None:
            continue
        socketio.emit(
            'game:ended', {'game_code': session.code},
            to=sid, namespace=_sid_namespace.get(sid, '/ws'),
        )


def register_socketio_handlers(registry, testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    global _registry
    _registry = registry
    registry.listen(push_state, push_ended)

    namespaces = ['/ws', '/'] if testing else ['/ws']
    for ns in namespaces:
        socketio.on_event('connect', handle_connect, namespace=ns)
        socketio.on_event('disconnect', handle_disconnect, namespace=ns)
        socketio.on_event('auth', handle_auth, namespace=ns)
        socketio.on_event('ping', handle_ping, namespace=ns)
        for event, build in ACTION_EVENTS.items():
            socketio.on_event(event, _make_action_handler(event, build), namespace=ns)
