"""In-memory session state.

One ``Session`` per live room. Everything here is plain data; transitions
live in ``machine.py`` and timers in ``scheduler.py``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


MAX_PARTICIPANTS = 15
MAX_NAME_LENGTH = 30
MIN_PLAYERS = 3
MESSAGE_INTERVAL_SEC = 2.0
MAX_MESSAGE_LENGTH = 200
CHAT_HISTORY_LIMIT = 100

CLUE_TIMER_CHOICES = (0, 15, 30, 45, 60)
DISCUSSION_TIMER_CHOICES = (0, 30, 60, 90)
MAX_ROUNDS_CHOICES = (1, 2, 3)
LANGUAGES = ('es', 'en')
VOTING_STYLES = ('anonymous', 'public')
THEMES = ('space', 'medieval', 'pirate', 'haunted', 'office')
MODES = ('online', 'local')

VOTED_MARKER = '__voted__'


class Phase(str, Enum):
    LOBBY = 'lobby'
    SETUP = 'setup'
    REVEAL = 'reveal'
    CLUES = 'clues'
    DISCUSSION = 'discussion'
    VOTING = 'voting'
    PLAYING = 'playing'
    IMPOSTOR_GUESS = 'impostor-guess'
    ELIMINATION_RESULTS = 'elimination-results'
    RESULTS = 'results'


IDLE_PHASES = (Phase.LOBBY, Phase.RESULTS)


@dataclass
class Settings:
    language: str = 'es'
    elimination: bool = False
    clue_timer: int = 30  # seconds, 0 = unlimited
    voting_style: str = 'anonymous'
    max_rounds: int = 1
    allow_skip: bool = True
    discussion_timer: int = 60  # seconds, 0 = no discussion phase
    theme: str = 'space'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'language': self.language,
            'elimination': self.elimination,
            'clue_timer': self.clue_timer,
            'voting_style': self.voting_style,
            'max_rounds': self.max_rounds,
            'allow_skip': self.allow_skip,
            'discussion_timer': self.discussion_timer,
            'theme': self.theme,
        }


@dataclass
class Participant:
    id: str
    name: str
    avatar: str
    color: str
    connection_id: Optional[str] = None
    is_host: bool = False
    is_spectator: bool = False
    has_seen_role: bool = False
    clue: Optional[str] = None
    is_eliminated: bool = False
    disconnected_at: Optional[float] = None
    last_message_at: Optional[float] = None

    @property
    def is_connected(self) -> bool:
        return self.connection_id is not None

    @property
    def is_active(self) -> bool:
        return not self.is_spectator and not self.is_eliminated

    def reset_round(self) -> None:
        self.has_seen_role = False
        self.clue = None
        self.is_eliminated = False


@dataclass
class ChatMessage:
    player_id: str
    player_name: str
    avatar: str
    text: str
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'player_id': self.player_id,
            'player_name': self.player_name,
            'avatar': self.avatar,
            'text': self.text,
            'timestamp': self.timestamp,
        }


@dataclass
class Elimination:
    round: int
    participant_id: str


@dataclass
class ScoreEntry:
    player_id: str
    player_name: str
    avatar: str
    score: int = 0
    rounds_won: int = 0
    rounds_played: int = 0
    impostor_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'player_id': self.player_id,
            'player_name': self.player_name,
            'avatar': self.avatar,
            'score': self.score,
            'rounds_won': self.rounds_won,
            'rounds_played': self.rounds_played,
            'impostor_count': self.impostor_count,
        }


@dataclass
class ScoreDelta:
    player_id: str
    delta: int
    reason: str  # citizensWin | votedCorrectly | impostorWin | impostorGuess

    def to_dict(self) -> Dict[str, Any]:
        return {'player_id': self.player_id, 'delta': self.delta, 'reason': self.reason}


@dataclass
class Session:
    code: str
    created_at: float
    host_id: Optional[str] = None
    phase: Phase = Phase.LOBBY
    mode: str = 'online'
    participants: List[Participant] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)

    secret_word: Optional[str] = None
    word_category: Optional[str] = None
    impostor_id: Optional[str] = None
    votes: Dict[str, str] = field(default_factory=dict)
    round: int = 1
    turn_index: int = 0

    turn_deadline: Optional[float] = None
    guess_deadline: Optional[float] = None
    discussion_deadline: Optional[float] = None

    impostor_guess: Optional[str] = None
    impostor_guess_correct: Optional[bool] = None
    impostor_caught: bool = False
    elimination_history: List[Elimination] = field(default_factory=list)
    last_eliminated_id: Optional[str] = None
    clue_history: List[Dict[str, str]] = field(default_factory=list)
    # Set once the current round's clues are in clue_history; cleared with the clues.
    clues_snapshotted: bool = False
    vote_history: List[Dict[str, str]] = field(default_factory=list)
    messages: List[ChatMessage] = field(default_factory=list)

    # Session-lifetime bookkeeping; survives play-again, cleared only by ending.
    session_id: Optional[int] = None
    session_round: int = 0
    scores: List[ScoreEntry] = field(default_factory=list)
    last_round_deltas: List[ScoreDelta] = field(default_factory=list)
    winning_team: Optional[str] = None
    results_settled: bool = False

    # Owned timer table, attached by the registry.
    timers: Any = field(default=None, repr=False, compare=False)

    # -- roster queries --

    def find(self, participant_id: Optional[str]) -> Optional[Participant]:
        if participant_id is None:
            return None
        for p in self.participants:
            if p.id == participant_id:
                return p
        return None

    @property
    def host(self) -> Optional[Participant]:
        return self.find(self.host_id)

    def players(self) -> List[Participant]:
        """Non-spectators, eliminated or not."""
        return [p for p in self.participants if not p.is_spectator]

    def active_players(self) -> List[Participant]:
        """Turn order: roster order filtered to non-eliminated players."""
        return [p for p in self.participants if p.is_active]

    def spectators(self) -> List[Participant]:
        return [p for p in self.participants if p.is_spectator]

    def current_turn(self) -> Optional[Participant]:
        active = self.active_players()
        if 0 <= self.turn_index < len(active):
            return active[self.turn_index]
        return None

    def round_complete(self) -> bool:
        return self.turn_index >= len(self.active_players())

    def name_taken(self, name: str) -> bool:
        wanted = name.lower()
        return any(p.name.lower() == wanted for p in self.participants)

    def score_for(self, player_id: str) -> Optional[ScoreEntry]:
        for entry in self.scores:
            if entry.player_id == player_id:
                return entry
        return None
