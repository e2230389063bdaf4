from typing import Dict, List, Optional

from .state import Phase, ScoreDelta, ScoreEntry, Session


SCORE_CITIZENS_WIN_CORRECT_VOTE = 2
SCORE_CITIZENS_WIN_WRONG_VOTE = 1
SCORE_VOTED_CORRECTLY_BONUS = 1
SCORE_IMPOSTOR_WIN = 3

IMPOSTOR = 'impostor'
CITIZENS = 'citizens'


def all_vote_rounds(session: Session) -> List[Dict[str, str]]:
    rounds = [dict(v) for v in session.vote_history]
    if session.votes:
        rounds.append(dict(session.votes))
    return rounds


def voted_correctly_map(session: Session) -> Dict[str, bool]:
    """True for every voter who ever voted for the impostor, False for other voters."""
    result: Dict[str, bool] = {}
    if not session.impostor_id:
        return result
    for round_votes in all_vote_rounds(session):
        for voter_id, target_id in round_votes.items():
            if target_id == session.impostor_id:
                result[voter_id] = True
            result.setdefault(voter_id, False)
    return result


def determine_winning_team(session: Session) -> str:
    if session.impostor_guess_correct is True:
        return IMPOSTOR
    if session.impostor_guess_correct is False:
        return CITIZENS
    # No guess was recorded.
    impostor = session.find(session.impostor_id)
    if impostor is None:
        # Impostor left the game: forfeit.
        return CITIZENS
    if session.impostor_caught or impostor.is_eliminated:
        # Caught, then the game ended before a guess came in.
        return CITIZENS
    # Survived elimination rounds, or was never caught in standard mode.
    return IMPOSTOR


def merge_ledger(session: Session) -> None:
    """Add ledger entries for new non-spectators and refresh names/avatars."""
    known = {entry.player_id for entry in session.scores}
    for p in session.participants:
        if p.is_spectator or p.id in known:
            continue
        session.scores.append(ScoreEntry(player_id=p.id, player_name=p.name, avatar=p.avatar))
    for entry in session.scores:
        p = session.find(entry.player_id)
        if p:
            entry.player_name = p.name
            entry.avatar = p.avatar


def apply_round_scores(session: Session, winning_team: str) -> List[ScoreDelta]:
    """Apply point deltas for the round that just ended to the session ledger.

    Impostor: +3 if their side won.
    Others: +1 for ever voting for the impostor (regardless of outcome),
    then if citizens won +2 (voted correctly) or +1 (did not).
    """
    if session.mode == 'local' or not session.impostor_id:
        return []

    correct = voted_correctly_map(session)
    citizens_won = winning_team == CITIZENS
    impostor_won = winning_team == IMPOSTOR
    deltas: List[ScoreDelta] = []

    for entry in session.scores:
        delta = 0
        if entry.player_id == session.impostor_id:
            if impostor_won:
                delta = SCORE_IMPOSTOR_WIN
                reason = 'impostorGuess' if session.impostor_guess_correct else 'impostorWin'
                deltas.append(ScoreDelta(entry.player_id, delta, reason))
                entry.rounds_won += 1
            entry.impostor_count += 1
        else:
            voted_correctly = correct.get(entry.player_id, False)
            if voted_correctly:
                delta += SCORE_VOTED_CORRECTLY_BONUS
                deltas.append(ScoreDelta(entry.player_id, SCORE_VOTED_CORRECTLY_BONUS, 'votedCorrectly'))
            if citizens_won:
                bonus = SCORE_CITIZENS_WIN_CORRECT_VOTE if voted_correctly else SCORE_CITIZENS_WIN_WRONG_VOTE
                delta += bonus
                deltas.append(ScoreDelta(entry.player_id, bonus, 'citizensWin'))
                entry.rounds_won += 1
        entry.score += delta
        entry.rounds_played += 1

    return deltas


def settle(session: Session) -> Optional[str]:
    """Score the finished game once.

    Returns the winning team the first time it runs for a game in the
    results phase, and None on every later call.
    """
    if session.results_settled or session.phase is not Phase.RESULTS:
        return None
    session.results_settled = True
    winning_team = determine_winning_team(session)
    session.winning_team = winning_team
    session.last_round_deltas = apply_round_scores(session, winning_team)
    return winning_team


def leaderboard(session: Session) -> List[ScoreEntry]:
    return sorted(session.scores, key=lambda e: (-e.score, e.player_name.lower()))
