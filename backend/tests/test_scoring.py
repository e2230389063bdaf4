from impostor.services.games import scoring
from impostor.services.games.actions import CastVote, GuessWord, Leave, StartVoting, SubmitClue
from impostor.services.games.machine import apply
from impostor.services.games.state import Phase


def _vote_round(session, ballots):
    for p in list(session.active_players()):
        apply(session, p.id, SubmitClue(f'clue-{p.id}'), 0.0)
    apply(session, session.host_id, StartVoting(), 0.0)
    for voter, target in ballots:
        assert apply(session, voter, CastVote(target), 0.0).ok


def test_citizens_win_after_failed_guess(new_session, to_clues):
    session = to_clues(new_session(discussion_timer=0), impostor='dani')
    _vote_round(session, [('ana', 'dani'), ('beto', 'dani'), ('caro', 'beto'), ('dani', 'beto')])
    apply(session, 'dani', GuessWord('grape'), 0.0)

    ledger = {e.player_id: e for e in session.scores}
    # voted correctly: +1 bonus, +2 for the win
    assert ledger['ana'].score == 3
    assert ledger['beto'].score == 3
    # voted wrong: +1 for the win only
    assert ledger['caro'].score == 1
    assert ledger['dani'].score == 0
    assert ledger['dani'].impostor_count == 1
    assert ledger['dani'].rounds_won == 0
    assert ledger['ana'].rounds_won == 1
    assert all(e.rounds_played == 1 for e in session.scores)


def test_voted_correctly_spans_history(new_session, to_clues):
    session = to_clues(new_session(), impostor='dani')
    session.vote_history = [{'ana': 'dani', 'beto': 'caro'}]
    session.votes = {'ana': 'caro', 'caro': 'beto'}
    assert scoring.voted_correctly_map(session) == {'ana': True, 'beto': False, 'caro': False}


def test_settle_runs_once(new_session, to_clues):
    session = to_clues(new_session(discussion_timer=0), impostor='dani')
    _vote_round(session, [('ana', 'beto'), ('beto', 'ana'), ('caro', 'ana'), ('dani', 'ana')])
    assert session.phase is Phase.RESULTS
    snapshot = [e.to_dict() for e in session.scores]

    assert scoring.settle(session) is None
    assert [e.to_dict() for e in session.scores] == snapshot


def test_settle_ignores_non_results_phase(new_session, to_clues):
    session = to_clues(new_session(), impostor='dani')
    assert scoring.settle(session) is None
    assert session.results_settled is False


def test_impostor_forfeit_gives_citizens_the_round(new_session, to_clues):
    session = to_clues(new_session(names=('Ana', 'Beto', 'Caro', 'Dani', 'Eli')), impostor='eli')
    apply(session, 'eli', Leave(), 0.0)
    assert session.winning_team == scoring.CITIZENS
    # the ledger keeps the departed impostor's entry
    assert session.score_for('eli').impostor_count == 1
    assert session.score_for('ana').score == 1


def test_caught_without_guess_is_a_citizen_win(new_session, to_clues):
    session = to_clues(new_session(), impostor='dani')
    session.phase = Phase.IMPOSTOR_GUESS
    session.impostor_caught = True
    assert scoring.determine_winning_team(session) == scoring.CITIZENS


def test_merge_ledger_is_idempotent_and_refreshes_names(new_session):
    session = new_session()
    scoring.merge_ledger(session)
    session.find('ana').name = 'Anita'
    scoring.merge_ledger(session)
    assert len(session.scores) == 4
    assert session.score_for('ana').player_name == 'Anita'


def test_leaderboard_orders_by_score_then_name(new_session):
    session = new_session()
    scoring.merge_ledger(session)
    session.score_for('dani').score = 5
    session.score_for('beto').score = 2
    session.score_for('ana').score = 2
    assert [e.player_id for e in scoring.leaderboard(session)] == ['dani', 'ana', 'beto', 'caro']
