"""Write-behind sink for finished games and session scores.

Nothing here ever blocks or rolls back a game transition: records are
built synchronously from the live session, then written from a background
task. Failures are logged and dropped.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from impostor import db
from impostor.models import GamePlayerRecord, GameRecord, SessionRecord, SessionScoreRecord

from .scoring import voted_correctly_map
from .state import Session


def final_clues(session: Session) -> Dict[str, List[str]]:
    rounds = list(session.clue_history)
    if not session.clues_snapshotted:
        current = {p.id: p.clue for p in session.active_players() if p.clue is not None}
        if current:
            rounds.append(current)
    clues: Dict[str, List[str]] = {}
    for round_clues in rounds:
        for pid, clue in round_clues.items():
            clues.setdefault(pid, []).append(clue)
    return clues


def build_game_record(session: Session) -> dict:
    clues = final_clues(session)
    correct = voted_correctly_map(session)
    eliminated_in = {e.participant_id: e.round for e in session.elimination_history}
    return {
        'code': session.code,
        'mode': session.mode,
        'host_id': session.host_id,
        'secret_word': session.secret_word,
        'word_category': session.word_category,
        'impostor_id': session.impostor_id,
        'settings': session.settings.to_dict(),
        'winning_team': session.winning_team,
        'rounds_played': session.round,
        'created_at': datetime.fromtimestamp(session.created_at, tz=timezone.utc),
        'ended_at': datetime.now(timezone.utc),
        'players': [
            {
                'player_id': p.id,
                'player_name': p.name,
                'avatar': p.avatar,
                'color': p.color,
                'was_impostor': p.id == session.impostor_id,
                'was_eliminated': p.is_eliminated,
                'eliminated_round': eliminated_in.get(p.id),
                'final_clues': clues.get(p.id, []),
                'voted_correctly': correct.get(p.id),
            }
            for p in session.players()
        ],
    }


def build_score_rows(session: Session) -> List[dict]:
    return [entry.to_dict() for entry in session.scores]


class NullSink:
    """Used when persistence is disabled; every call is a no-op."""

    def create_session(self, room_code: str, on_created: Callable[[int], None]) -> None:
        pass

    def save_scores(self, session_id: int, scores: List[dict], total_rounds: int) -> None:
        pass

    def end_session(self, session_id: int, total_rounds: int) -> None:
        pass

    def save_game(self, record: dict) -> None:
        pass


class SqlResultSink:
    def __init__(self, app, spawn: Callable, logger: Optional[logging.Logger] = None):
        self._app = app
        self._spawn = spawn
        self._logger = logger or logging.getLogger(__name__)

    def _submit(self, label: str, work: Callable[[], Optional[Callable[[], None]]]) -> None:
        def _task():
            with self._app.app_context():
                try:
                    after_commit = work()
                    db.session.commit()
                except Exception as exc:
                    db.session.rollback()
                    self._logger.error(f"[persist-error] {label}: {exc}")
                    return
            if after_commit:
                after_commit()

        self._spawn(_task)

    def create_session(self, room_code: str, on_created: Callable[[int], None]) -> None:
        def work():
            row = SessionRecord(room_code=room_code)
            db.session.add(row)
            db.session.flush()
            row_id = row.id
            return lambda: on_created(row_id)

        self._submit(f'create_session room={room_code}', work)

    def save_scores(self, session_id: int, scores: List[dict], total_rounds: int) -> None:
        def work():
            record = db.session.get(SessionRecord, session_id)
            if record is None:
                return None
            record.total_rounds = total_rounds
            for s in scores:
                row = SessionScoreRecord.query.filter_by(session_id=session_id, player_id=s['player_id']).first()
                if row is None:
                    row = SessionScoreRecord(session_id=session_id, player_id=s['player_id'])
                    db.session.add(row)
                row.player_name = s['player_name']
                row.score = s['score']
                row.rounds_won = s['rounds_won']
                row.rounds_played = s['rounds_played']
                row.impostor_count = s['impostor_count']
            return None

        self._submit(f'save_scores session={session_id}', work)

    def end_session(self, session_id: int, total_rounds: int) -> None:
        def work():
            record = db.session.get(SessionRecord, session_id)
            if record is not None:
                record.ended_at = datetime.now(timezone.utc)
                record.total_rounds = total_rounds
            return None

        self._submit(f'end_session session={session_id}', work)

    def save_game(self, record: dict) -> None:
        def work():
            fields = {k: v for k, v in record.items() if k != 'players'}
            game = GameRecord(**fields)
            game.players = [GamePlayerRecord(**p) for p in record['players']]
            db.session.add(game)
            self._logger.info(
                f"[persist] game={record['code']} winner={record['winning_team']} players={len(record['players'])}"
            )
            return None

        self._submit(f"save_game code={record['code']}", work)
