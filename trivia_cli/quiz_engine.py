"""
Quiz engine core logic for the trivia CLI.
Handles answer matching, question selection, scoring and session termination.
"""
import logging
import random
import time
from typing import Iterable, List, Optional

from .channels import ChannelClosedError, InteractionChannel
from .models import Quiz, SessionResult, SessionState, SessionStatus

logger = logging.getLogger(__name__)


def answers_match(expected: str, candidate: str) -> bool:
    """
    Compare an answer with the expected one, ignoring case and surrounding whitespace.

    Args:
        expected: Stored answer
        candidate: Answer given by the player

    Returns:
        True if both are equal once lower-cased and stripped
    """
    return expected.lower().strip() == candidate.lower().strip()


class QuizEngineError(Exception):
    """Base exception for quiz engine errors."""
    pass


class SessionAbortedError(QuizEngineError):
    """
    Raised when the channel goes away during a session.

    If the channel closed while a question was outstanding, ``state`` is
    unchanged since the last scored round and still ASKING. If it closed while
    a verdict or the final report was being written, the answer has already
    been scored, so ``state`` may carry an updated score or a terminal status
    (EMPTY or FAILED) that the client never saw.
    """

    def __init__(self, state: SessionState, reason: str = ""):
        super().__init__(reason or "Session aborted")
        self.state = state
        self.reason = reason


class SessionLifecycleLogger:
    """Structured logging for play session events."""

    @staticmethod
    def log_session_start(channel: str, mode: str, pool_size: int) -> float:
        """Log session start and return its start time."""
        start_time = time.time()
        logger.info(
            f"Session lifecycle: START - Channel {channel}, Mode {mode}, Pool {pool_size}",
            extra={
                'event_type': 'session_start',
                'channel': channel,
                'mode': mode,
                'pool_size': pool_size,
                'timestamp': start_time
            }
        )
        return start_time

    @staticmethod
    def log_round(channel: str, round_number: int, quiz_id: int, correct: bool, score: int) -> None:
        logger.debug(
            f"Session lifecycle: ROUND {round_number} - Channel {channel}, Quiz {quiz_id}, "
            f"{'correct' if correct else 'incorrect'}, Score {score}",
            extra={
                'event_type': 'session_round',
                'channel': channel,
                'round': round_number,
                'quiz_id': quiz_id,
                'correct': correct,
                'score': score,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_session_end(channel: str, state: SessionState, start_time: float) -> None:
        duration = time.time() - start_time
        logger.info(
            f"Session lifecycle: END - Channel {channel}, Status {state.status.value}, "
            f"Score {state.score}, Rounds {state.rounds}, Duration {duration:.3f}s",
            extra={
                'event_type': 'session_end',
                'channel': channel,
                'status': state.status.value,
                'score': state.score,
                'rounds': state.rounds,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_session_aborted(channel: str, state: SessionState, reason: str) -> None:
        logger.warning(
            f"Session lifecycle: ABORTED - Channel {channel}, Score {state.score}, "
            f"Rounds {state.rounds}: {reason}",
            extra={
                'event_type': 'session_aborted',
                'channel': channel,
                'score': state.score,
                'rounds': state.rounds,
                'reason': reason,
                'timestamp': time.time()
            }
        )


class QuizEngine:
    """Drives single-quiz tests and full-deck play sessions over a channel."""

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Initialize the quiz engine.

        Args:
            rng: Random source for question selection, a fresh one if omitted
        """
        self._rng = rng or random.Random()

    def start_session(self, quizzes: Iterable[Quiz]) -> SessionState:
        """Snapshot the quizzes into a new session state."""
        return SessionState.start(quizzes)

    def select_index(self, state: SessionState) -> int:
        """
        Pick a pool index uniformly at random.

        The draw is made over the current pool on every round so that removed
        entries never bias what is left.

        Raises:
            ValueError: If the pool is empty
        """
        if not state.pool:
            raise ValueError("Cannot select a question from an empty pool")
        return self._rng.randrange(len(state.pool))

    def score_answer(self, state: SessionState, index: int, answer: str) -> SessionState:
        """
        Apply one answer to the session state.

        A match removes the quiz from the pool and increases the score; anything
        else fails the session.

        Args:
            state: Session in the ASKING state
            index: Pool index of the quiz that was asked
            answer: Trimmed answer from the channel

        Returns:
            The same state object, moved to EMPTY, ASKING or FAILED
        """
        if state.status != SessionStatus.ASKING:
            raise QuizEngineError(f"Cannot score an answer in state {state.status.value}")

        quiz = state.pool[index]
        state.status = SessionStatus.SCORED
        state.rounds += 1
        state.asked.append(quiz.id)

        if answers_match(quiz.answer, answer):
            state.score += 1
            del state.pool[index]
            state.status = SessionStatus.ASKING if state.pool else SessionStatus.EMPTY
        else:
            state.status = SessionStatus.FAILED
        return state

    async def play_round(self, state: SessionState, channel: InteractionChannel) -> bool:
        """
        Ask one question and score the answer.

        Returns:
            True if the answer was correct

        Raises:
            SessionAbortedError: If the channel closed before answering
        """
        index = self.select_index(state)
        quiz = state.pool[index]
        try:
            answer = await channel.ask(f"{quiz.question}? ", color='red')
        except ChannelClosedError as e:
            SessionLifecycleLogger.log_session_aborted(channel.name, state, str(e))
            raise SessionAbortedError(state, str(e)) from e

        score_before = state.score
        self.score_answer(state, index, answer)
        correct = state.score > score_before
        SessionLifecycleLogger.log_round(channel.name, state.rounds, quiz.id, correct, state.score)
        return correct

    async def run_deck(self, quizzes: Iterable[Quiz], channel: InteractionChannel) -> SessionResult:
        """
        Ask every quiz once in random order until one is missed or none are left.

        Args:
            quizzes: Snapshot of all stored quizzes, possibly empty
            channel: Channel used to ask questions and report progress

        Returns:
            SessionResult with status EMPTY or FAILED and the final score

        Raises:
            SessionAbortedError: If the channel closed mid-session
        """
        state = self.start_session(quizzes)
        start_time = SessionLifecycleLogger.log_session_start(channel.name, "deck", len(state.pool))
        lines: List[str] = []

        async def report(text: str, color: Optional[str] = None) -> None:
            lines.append(text)
            await channel.send(text, color)

        try:
            while not state.is_terminal:
                correct = await self.play_round(state, channel)
                if correct:
                    await report(f"CORRECT - {state.score} correct answer(s) so far.", 'green')
                else:
                    await report("INCORRECT.", 'red')

            if state.status == SessionStatus.EMPTY:
                await report("No more questions to ask.")
            await report(f"Game over. Score: {state.score}")
            await channel.banner(str(state.score), 'magenta')
        except ChannelClosedError as e:
            SessionLifecycleLogger.log_session_aborted(channel.name, state, str(e))
            raise SessionAbortedError(state, str(e)) from e

        SessionLifecycleLogger.log_session_end(channel.name, state, start_time)
        return SessionResult(
            status=state.status,
            score=state.score,
            rounds=state.rounds,
            asked=list(state.asked),
            lines=lines
        )

    async def run_single(self, quiz: Quiz, channel: InteractionChannel) -> SessionResult:
        """
        Ask a single quiz once, with no retry.

        Args:
            quiz: An existing quiz record
            channel: Channel used to ask the question and report the verdict

        Returns:
            SessionResult whose ``correct`` flag is the verdict

        Raises:
            SessionAbortedError: If the channel closed before answering
        """
        state = self.start_session([quiz])
        start_time = SessionLifecycleLogger.log_session_start(channel.name, "single", 1)
        lines: List[str] = []

        correct = await self.play_round(state, channel)
        verdict = "correct" if correct else "incorrect"
        lines.append(f"Your answer is {verdict}.")
        try:
            await channel.send(lines[-1])
            await channel.banner(verdict.capitalize(), 'green' if correct else 'red')
        except ChannelClosedError as e:
            SessionLifecycleLogger.log_session_aborted(channel.name, state, str(e))
            raise SessionAbortedError(state, str(e)) from e

        SessionLifecycleLogger.log_session_end(channel.name, state, start_time)
        return SessionResult(
            status=state.status,
            score=state.score,
            rounds=state.rounds,
            asked=list(state.asked),
            lines=lines
        )
