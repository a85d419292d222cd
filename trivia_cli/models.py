"""
Core data models for the trivia CLI.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class Quiz:
    """A question/answer record with a store-assigned identifier."""
    id: int
    question: str
    answer: str


class SessionStatus(Enum):
    """States of a play session."""
    EMPTY = "empty"
    ASKING = "asking"
    SCORED = "scored"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.EMPTY, SessionStatus.FAILED)


@dataclass
class SessionState:
    """Pool and score of one play session."""
    pool: List[Quiz]
    score: int = 0
    status: SessionStatus = SessionStatus.ASKING
    rounds: int = 0
    asked: List[int] = field(default_factory=list)

    @classmethod
    def start(cls, quizzes) -> "SessionState":
        pool = list(quizzes)
        status = SessionStatus.ASKING if pool else SessionStatus.EMPTY
        return cls(pool=pool, status=status)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass
class SessionResult:
    """Outcome of a finished session."""
    status: SessionStatus
    score: int
    rounds: int
    asked: List[int] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)

    @property
    def correct(self) -> bool:
        """True when every question asked was answered correctly."""
        return self.status == SessionStatus.EMPTY


@dataclass
class ServerSettings:
    """Runtime settings for the front ends."""
    host: str = "127.0.0.1"
    port: int = 3030
    quiz_file: str = "./quizzes.json"
    seed_samples: bool = True
    command_prefix: str = "!"
    answer_timeout: Optional[int] = 120
