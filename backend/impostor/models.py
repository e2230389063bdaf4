from datetime import datetime, timezone

from impostor import db


def _utcnow():
    return datetime.now(timezone.utc)


class SessionRecord(db.Model):
    __tablename__ = 'sessions'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(4), nullable=False, index=True)
    total_rounds = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    scores = db.relationship('SessionScoreRecord', back_populates='session', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'room_code': self.room_code,
            'total_rounds': self.total_rounds,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'ended_at': self.ended_at.isoformat() if self.ended_at else None,
            'scores': [s.to_dict() for s in self.scores],
        }


class SessionScoreRecord(db.Model):
    __tablename__ = 'session_scores'
    __table_args__ = (db.UniqueConstraint('session_id', 'player_id', name='uq_session_scores_session_player'),)
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('sessions.id', ondelete='CASCADE'), nullable=False)
    player_id = db.Column(db.String(64), nullable=False, index=True)
    player_name = db.Column(db.String(30), nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    rounds_won = db.Column(db.Integer, nullable=False, default=0)
    rounds_played = db.Column(db.Integer, nullable=False, default=0)
    impostor_count = db.Column(db.Integer, nullable=False, default=0)
    session = db.relationship('SessionRecord', back_populates='scores')

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'player_name': self.player_name,
            'score': self.score,
            'rounds_won': self.rounds_won,
            'rounds_played': self.rounds_played,
            'impostor_count': self.impostor_count,
        }


class GameRecord(db.Model):
    __tablename__ = 'games'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(4), nullable=False)
    mode = db.Column(db.String(10), nullable=False)
    host_id = db.Column(db.String(64), nullable=True)
    secret_word = db.Column(db.String(100), nullable=True)
    word_category = db.Column(db.String(50), nullable=True)
    impostor_id = db.Column(db.String(64), nullable=True)
    settings = db.Column(db.JSON, nullable=False)
    winning_team = db.Column(db.String(20), nullable=True)
    rounds_played = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    players = db.relationship('GamePlayerRecord', back_populates='game', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'mode': self.mode,
            'host_id': self.host_id,
            'secret_word': self.secret_word,
            'impostor_id': self.impostor_id,
            'settings': self.settings,
            'winning_team': self.winning_team,
            'rounds_played': self.rounds_played,
            'players': [p.to_dict() for p in self.players],
        }


class GamePlayerRecord(db.Model):
    __tablename__ = 'game_players'
    __table_args__ = (db.UniqueConstraint('game_id', 'player_id', name='uq_game_players_game_player'),)
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('games.id', ondelete='CASCADE'), nullable=False)
    player_id = db.Column(db.String(64), nullable=False, index=True)
    player_name = db.Column(db.String(30), nullable=False)
    avatar = db.Column(db.String(10), nullable=False)
    color = db.Column(db.String(7), nullable=False)
    was_impostor = db.Column(db.Boolean, nullable=False, default=False)
    was_eliminated = db.Column(db.Boolean, nullable=False, default=False)
    eliminated_round = db.Column(db.Integer, nullable=True)
    final_clues = db.Column(db.JSON, nullable=True)
    voted_correctly = db.Column(db.Boolean, nullable=True)
    game = db.relationship('GameRecord', back_populates='players')

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'player_name': self.player_name,
            'avatar': self.avatar,
            'color': self.color,
            'was_impostor': self.was_impostor,
            'was_eliminated': self.was_eliminated,
            'eliminated_round': self.eliminated_round,
            'final_clues': self.final_clues or [],
            'voted_correctly': self.voted_correctly,
        }
