import re

from impostor.services.games.actions import (
    CreateSession,
    EndSession,
    ErrorCode,
    JoinSession,
    Leave,
    MarkRoleReady,
    SetWord,
    StartGame,
    SubmitClue,
    WatchSession,
)
from impostor.services.games import registry as registry_module
from impostor.services.games.registry import SessionRegistry
from impostor.services.games.scheduler import DeferredScheduler, disconnect_key
from impostor.services.games.state import Phase

CODE_PATTERN = re.compile(r'^[BCDFGHJKLMNPRSTV][AEIOU][BCDFGHJKLMNPRSTV][AEIOU]$')


def start_round(registry, session):
    host = session.host_id
    registry.dispatch(host, StartGame())
    registry.dispatch(host, SetWord('banana'))
    for p in session.players():
        registry.dispatch(p.id, MarkRoleReady())


def test_codes_are_pronounceable_and_unique():
    registry = SessionRegistry(DeferredScheduler())
    codes = set()
    for i in range(20):
        result = registry.dispatch(f'h{i}', CreateSession(f'Host{i}'))
        assert CODE_PATTERN.match(result.session.code)
        codes.add(result.session.code)
    assert len(codes) == 20
    assert len(registry) == 20


class FirstChoice:
    def choice(self, seq):
        return seq[0]


def test_code_search_falls_back_when_draws_collide():
    registry = SessionRegistry(DeferredScheduler(), rng=FirstChoice())
    first = registry.dispatch('ana', CreateSession('Ana')).session
    second = registry.dispatch('beto', CreateSession('Beto')).session
    assert first.code == 'BABA'
    assert second.code == 'BABE'
    assert registry.get('BABA') is first


def test_create_rejected_when_every_code_is_live(monkeypatch):
    monkeypatch.setattr(registry_module, 'CONSONANTS', 'B')
    monkeypatch.setattr(registry_module, 'VOWELS', 'A')
    registry = SessionRegistry(DeferredScheduler())
    session = registry.dispatch('ana', CreateSession('Ana')).session
    assert session.code == 'BABA'

    assert registry.dispatch('beto', CreateSession('Beto')).error is ErrorCode.SERVER_FULL
    assert registry.dispatch('ana', CreateSession('Ana')).error is ErrorCode.SERVER_FULL
    assert registry.find_by_participant('ana') is session
    assert [p.id for p in session.participants] == ['ana']
    assert len(registry) == 1


def test_dispatch_requires_identity_and_room(make_registry):
    registry, _, session = make_registry()
    assert registry.dispatch(None, StartGame()).error is ErrorCode.NOT_AUTHENTICATED
    assert registry.dispatch('zed', StartGame()).error is ErrorCode.ROOM_NOT_FOUND
    assert registry.dispatch('zed', JoinSession('ZZZZ', 'Zed')).error is ErrorCode.ROOM_NOT_FOUND


def test_join_by_code_is_case_insensitive_and_indexed(make_registry):
    registry, _, session = make_registry(names=('Ana', 'Beto'))
    result = registry.dispatch('caro', JoinSession(session.code.lower(), 'Caro', 'sid-caro'))
    assert result.ok
    assert registry.find_by_participant('caro') is session
    assert registry.identity_for('sid-caro') == 'caro'


def test_creating_a_room_leaves_the_previous_one(make_registry):
    registry, _, session = make_registry()
    result = registry.dispatch('beto', CreateSession('Beto', 'sid-beto'))
    assert result.ok
    assert session.find('beto') is None
    assert registry.find_by_participant('beto') is result.session
    assert len(registry) == 2


def test_joining_another_room_leaves_the_previous_one(make_registry):
    registry, _, first = make_registry()
    second = registry.dispatch('eva', CreateSession('Eva', 'sid-eva')).session
    assert registry.dispatch('caro', JoinSession(second.code, 'Caro', 'sid-caro')).ok
    assert first.find('caro') is None
    assert registry.find_by_participant('caro') is second


def test_failed_join_keeps_current_room(make_registry):
    registry, _, first = make_registry()
    second = registry.dispatch('eva', CreateSession('Eva', 'sid-eva')).session
    assert registry.dispatch('caro', JoinSession(second.code, 'EVA')).error is ErrorCode.NAME_TAKEN
    assert registry.find_by_participant('caro') is first


def test_rejoining_same_room_reconnects(make_registry):
    registry, _, session = make_registry()
    registry.disconnect('sid-beto')
    result = registry.dispatch('beto', JoinSession(session.code, 'Beto', 'sid-beto-2'))
    assert result.ok
    assert len(session.participants) == 4
    assert session.find('beto').connection_id == 'sid-beto-2'
    assert not session.timers.is_armed(disconnect_key('beto'))


def test_reconnect_within_grace_keeps_seat(make_registry, clock):
    registry, scheduler, session = make_registry(impostor='dani')
    start_round(registry, session)
    registry.dispatch('ana', SubmitClue('fruit'))

    registry.disconnect('sid-beto')
    beto = session.find('beto')
    assert beto.is_connected is False
    assert beto.disconnected_at == clock()
    assert session.timers.is_armed(disconnect_key('beto'))

    assert registry.authenticate('beto', 'sid-beto-2') is session
    assert beto.connection_id == 'sid-beto-2'
    assert beto.disconnected_at is None
    assert not session.timers.is_armed(disconnect_key('beto'))

    scheduler.run_pending(disconnect_key('beto'))
    assert [p.id for p in session.participants] == ['ana', 'beto', 'caro', 'dani']
    assert session.phase is Phase.CLUES
    assert session.current_turn().id == 'beto'


def test_grace_expiry_removes_participant(make_registry):
    registry, scheduler, session = make_registry(impostor='dani')
    start_round(registry, session)

    registry.disconnect('sid-caro')
    scheduler.run_pending(disconnect_key('caro'))

    assert session.find('caro') is None
    assert registry.find_by_participant('caro') is None
    assert session.phase is Phase.CLUES


def test_disconnect_of_unknown_connection_is_ignored(make_registry):
    registry, scheduler, _ = make_registry()
    assert registry.disconnect('sid-nobody') is None
    assert scheduler.pending_keys() == []


def test_last_leave_destroys_session(make_registry):
    registry, _, session = make_registry(names=('Ana', 'Beto'))
    ended = []
    registry.listen(lambda s: None, ended.append)
    registry.dispatch('beto', Leave())
    registry.dispatch('ana', Leave())
    assert registry.get(session.code) is None
    assert ended == [session]
    assert len(registry) == 0


def test_end_is_host_only_and_closes_record(make_registry, sink):
    registry, _, session = make_registry(impostor='dani')
    start_round(registry, session)
    assert session.session_id == 41

    assert registry.dispatch('beto', EndSession()).error is ErrorCode.NOT_HOST
    assert registry.dispatch('ana', EndSession()).ok
    assert registry.get(session.code) is None
    assert registry.find_by_participant('beto') is None
    assert sink.named('end_session') == [('end_session', 41)]


def test_session_record_created_once_per_session(make_registry, sink):
    registry, _, session = make_registry(impostor='dani')
    start_round(registry, session)
    assert sink.named('create_session') == [('create_session', session.code)]


def test_state_listener_sees_every_change(make_registry):
    registry, _, session = make_registry()
    seen = []
    registry.listen(lambda s: seen.append(s.phase), lambda s: None)
    registry.dispatch('eva', WatchSession(session.code, 'Eva', 'sid-eva'))
    registry.dispatch('ana', StartGame())
    assert seen == [Phase.LOBBY, Phase.SETUP]


def test_rejected_action_does_not_notify(make_registry):
    registry, _, session = make_registry()
    seen = []
    registry.listen(seen.append, lambda s: None)
    assert registry.dispatch('beto', StartGame()).error is ErrorCode.NOT_HOST
    assert seen == []
