"""Actions accepted by the state machine and the result they produce.

Each action is a small frozen dataclass. Live actions come from a
participant; timer actions (``TurnExpired`` and friends) are submitted by
the registry with no actor.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .state import Session


class ErrorCode(str, Enum):
    ROOM_NOT_FOUND = 'room_not_found'
    NOT_AUTHENTICATED = 'not_authenticated'
    NAME_REQUIRED = 'name_required'
    NAME_TOO_LONG = 'name_too_long'
    NOT_HOST = 'not_host'
    WRONG_PHASE = 'wrong_phase'
    NAME_TAKEN = 'name_taken'
    ROOM_FULL = 'room_full'
    PLAYER_NOT_FOUND = 'player_not_found'
    TARGET_NOT_FOUND = 'target_not_found'
    NOT_YOUR_TURN = 'not_your_turn'
    EMPTY_CLUE = 'empty_clue'
    EMPTY_WORD = 'empty_word'
    EMPTY_MESSAGE = 'empty_message'
    MESSAGE_TOO_LONG = 'message_too_long'
    CANNOT_VOTE_SELF = 'cannot_vote_self'
    ELIMINATED_CANNOT_ACT = 'eliminated_cannot_act'
    CANNOT_VOTE_ELIMINATED = 'cannot_vote_eliminated'
    CANNOT_VOTE_SPECTATOR = 'cannot_vote_spectator'
    SPECTATOR_CANNOT_ACT = 'spectator_cannot_act'
    RATE_LIMITED = 'rate_limited'
    INVALID_SETTING = 'invalid_setting'
    NOT_ENOUGH_PLAYERS = 'not_enough_players'
    NOT_IMPOSTOR = 'not_impostor'
    ALREADY_PLAYER = 'already_player'
    CANNOT_TRANSFER_TO_SPECTATOR = 'cannot_transfer_to_spectator'
    SKIP_NOT_ALLOWED = 'skip_not_allowed'
    SERVER_FULL = 'server_full'


@dataclass
class Result:
    session: Optional[Session] = None
    error: Optional[ErrorCode] = None
    # True exactly once per game: the transition into results that scored it.
    settled: bool = False
    # Roster emptied or the host ended the session; the registry destroys it.
    ended: bool = False
    removed_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def reject(cls, error: ErrorCode) -> 'Result':
        return cls(error=error)


class Action:
    """Marker base class for every action variant."""


# -- roster --

@dataclass(frozen=True)
class CreateSession(Action):
    name: str
    connection_id: Optional[str] = None
    avatar: Optional[str] = None


@dataclass(frozen=True)
class JoinSession(Action):
    code: str
    name: str
    connection_id: Optional[str] = None
    avatar: Optional[str] = None


@dataclass(frozen=True)
class WatchSession(Action):
    code: str
    name: str
    connection_id: Optional[str] = None
    avatar: Optional[str] = None


@dataclass(frozen=True)
class ConvertToPlayer(Action):
    pass


@dataclass(frozen=True)
class Leave(Action):
    pass


@dataclass(frozen=True)
class EndSession(Action):
    pass


# -- lobby --

@dataclass(frozen=True)
class SetMode(Action):
    mode: str


@dataclass(frozen=True)
class UpdateSettings(Action):
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StartGame(Action):
    pass


# -- round --

@dataclass(frozen=True)
class SetWord(Action):
    word: str
    category: Optional[str] = None


@dataclass(frozen=True)
class MarkRoleReady(Action):
    pass


@dataclass(frozen=True)
class SubmitClue(Action):
    clue: str


@dataclass(frozen=True)
class SkipTurn(Action):
    pass


@dataclass(frozen=True)
class NextRound(Action):
    pass


@dataclass(frozen=True)
class StartVoting(Action):
    pass


@dataclass(frozen=True)
class EndDiscussion(Action):
    pass


@dataclass(frozen=True)
class SendMessage(Action):
    text: str


@dataclass(frozen=True)
class CastVote(Action):
    target_id: str


@dataclass(frozen=True)
class GuessWord(Action):
    guess: str


@dataclass(frozen=True)
class RevealImpostor(Action):
    pass


@dataclass(frozen=True)
class TransferHost(Action):
    new_host_id: str


@dataclass(frozen=True)
class ContinueAfterElimination(Action):
    pass


@dataclass(frozen=True)
class PlayAgain(Action):
    pass


# -- timer expiries --

@dataclass(frozen=True)
class TurnExpired(Action):
    pass


@dataclass(frozen=True)
class GuessExpired(Action):
    pass


@dataclass(frozen=True)
class DiscussionExpired(Action):
    pass
