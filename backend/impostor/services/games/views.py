"""Per-participant snapshots of a session.

``project`` is the only thing the transport ever sends to a client, so
every secret is filtered here: the word, the impostor's identity, other
players' vote targets and the impostor's guess.
"""

from typing import Any, Dict, Optional

from .scoring import leaderboard
from .state import VOTED_MARKER, Phase, Session

IMPOSTOR_VISIBLE_PHASES = (Phase.IMPOSTOR_GUESS, Phase.ELIMINATION_RESULTS, Phase.RESULTS)
VOTES_VISIBLE_PHASES = (Phase.IMPOSTOR_GUESS, Phase.ELIMINATION_RESULTS, Phase.RESULTS)


def visible_votes(session: Session, viewer_id: Optional[str]) -> Dict[str, str]:
    if session.phase in VOTES_VISIBLE_PHASES:
        return dict(session.votes)
    if session.phase is Phase.VOTING and session.settings.voting_style == 'public':
        return dict(session.votes)
    # Everyone sees who has voted; only their own target is real.
    return {
        voter: (target if voter == viewer_id else VOTED_MARKER)
        for voter, target in session.votes.items()
    }


def project(session: Session, viewer_id: str) -> Dict[str, Any]:
    viewer = session.find(viewer_id)
    is_spectator = viewer.is_spectator if viewer else False
    is_impostor = not is_spectator and session.impostor_id is not None and session.impostor_id == viewer_id
    in_results = session.phase is Phase.RESULTS
    in_discussion = session.phase is Phase.DISCUSSION
    host = session.host

    if in_results or not (is_spectator or is_impostor):
        secret_word = session.secret_word
    else:
        secret_word = None

    history = []
    for entry in session.elimination_history:
        eliminated = session.find(entry.participant_id)
        history.append({
            'round': entry.round,
            'player_id': entry.participant_id,
            'player_name': eliminated.name if eliminated else '?',
        })

    return {
        'game_code': session.code,
        'phase': session.phase.value,
        'mode': session.mode,
        'players': [
            {
                'id': p.id,
                'name': p.name,
                'avatar': p.avatar,
                'color': p.color,
                'is_host': p.is_host,
                'is_spectator': p.is_spectator,
                'has_seen_role': p.has_seen_role,
                'clue': p.clue,
                'is_eliminated': p.is_eliminated,
                'is_connected': p.is_connected,
            }
            for p in session.participants
        ],
        'spectator_count': len(session.spectators()),
        'secret_word': secret_word,
        'word_category': session.word_category,
        'is_impostor': is_impostor,
        'is_spectator': is_spectator,
        'impostor_id': session.impostor_id if session.phase in IMPOSTOR_VISIBLE_PHASES else None,
        'votes': visible_votes(session, viewer_id),
        'round': session.round,
        'turn_index': session.turn_index,
        'turn_deadline': session.turn_deadline,
        'impostor_guess': session.impostor_guess if in_results else None,
        'impostor_guess_correct': session.impostor_guess_correct if in_results else None,
        'guess_deadline': session.guess_deadline,
        'winning_team': session.winning_team if in_results else None,
        'player_id': viewer_id,
        'is_host': viewer.is_host if viewer else False,
        'host_name': host.name if host else '',
        'settings': session.settings.to_dict(),
        'elimination_history': history,
        'last_eliminated_id': session.last_eliminated_id,
        'messages': [m.to_dict() for m in session.messages] if in_discussion else [],
        'discussion_deadline': session.discussion_deadline if in_discussion else None,
        'session_scores': [
            {
                'player_id': e.player_id,
                'player_name': e.player_name,
                'avatar': e.avatar,
                'score': e.score,
                'rounds_won': e.rounds_won,
                'rounds_played': e.rounds_played,
            }
            for e in leaderboard(session)
        ],
        'last_round_deltas': [d.to_dict() for d in session.last_round_deltas],
    }


def peek(session: Session) -> Dict[str, Any]:
    """Public lobby summary for the join screen."""
    return {
        'game_code': session.code,
        'phase': session.phase.value,
        'mode': session.mode,
        'player_count': len(session.players()),
        'spectator_count': len(session.spectators()),
        'host_name': session.host.name if session.host else '',
        'joinable': session.phase is Phase.LOBBY,
    }
