"""
Command controller for the trivia CLI.
Parses client command lines and runs them against the quiz store and engine.
"""
import logging
import re
from typing import Callable, Dict, List, Optional

from .channels import ChannelClosedError, InteractionChannel
from .data_manager import QuizStore, QuizStoreError, QuizValidationError
from .output import colorize
from .quiz_engine import QuizEngine, SessionAbortedError
from .models import SessionResult


HELP_LINES = [
    "Commands:",
    "  h|help - Show this help.",
    "  list - List the existing quizzes.",
    "  show <id> - Show the question and the answer of the given quiz.",
    "  add - Add a new quiz interactively.",
    "  delete <id> - Delete the given quiz.",
    "  edit <id> - Edit the given quiz.",
    "  test <id> - Test the given quiz.",
    "  p|play - Play: answer every quiz in random order.",
    "  credits - Credits.",
    "  q|quit - Leave the program.",
]

AUTHORS = [
    "Caridad Arroyo Arévalo",
]

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class QuizControllerError(Exception):
    """Base exception for command errors shown to the client."""
    pass


class InvalidIdError(QuizControllerError):
    """Raised when an <id> argument is missing or not a number."""
    pass


class QuizNotFoundError(QuizControllerError):
    """Raised when no quiz has the requested id."""

    def __init__(self, quiz_id: int):
        super().__init__(f"No quiz associated with id={quiz_id}.")
        self.quiz_id = quiz_id


def validate_id(raw_id: Optional[str]) -> int:
    """
    Parse an <id> argument.

    Leading digits are enough, so "12abc" reads as 12.

    Raises:
        InvalidIdError: If the argument is missing or does not start with a number
    """
    if raw_id is None:
        raise InvalidIdError("Missing <id> parameter.")
    match = _LEADING_INT.match(raw_id)
    if not match:
        raise InvalidIdError("The <id> parameter is not a number.")
    return int(match.group(1))


class QuizController:
    """
    Runs client commands against the shared quiz store.

    One controller serves every client; all per-session state lives in the
    engine call for that client.
    """

    PROMPT = "quiz > "
    ID_COMMANDS = frozenset({'show', 'delete', 'edit', 'test'})

    def __init__(self, store: QuizStore, engine: Optional[QuizEngine] = None):
        """
        Initialize the controller.

        Args:
            store: Quiz store shared by all clients
            engine: Engine used for test and play, a new one if omitted
        """
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.engine = engine or QuizEngine()
        self._commands: Dict[str, Callable] = {
            'h': self.help_cmd,
            'help': self.help_cmd,
            'list': self.list_cmd,
            'show': self.show_cmd,
            'add': self.add_cmd,
            'delete': self.delete_cmd,
            'edit': self.edit_cmd,
            'test': self.test_cmd,
            'p': self.play_cmd,
            'play': self.play_cmd,
            'credits': self.credits_cmd,
        }

    async def run_client(self, channel: InteractionChannel) -> None:
        """
        Prompt for commands until the client quits or goes away.

        Args:
            channel: Channel of the connected client
        """
        self.logger.info(f"Client session started on {channel.name}")
        try:
            while True:
                line = await channel.ask(self.PROMPT, color='blue')
                if not await self.handle_line(channel, line):
                    break
        except (ChannelClosedError, SessionAbortedError) as e:
            self.logger.info(f"Client session on {channel.name} ended: {e}")
        finally:
            await channel.close()
        self.logger.info(f"Client session finished on {channel.name}")

    async def handle_line(self, channel: InteractionChannel, line: str) -> bool:
        """
        Run one command line.

        Args:
            channel: Channel of the client that sent the line
            line: Raw command line

        Returns:
            False if the client asked to quit, True otherwise

        Raises:
            ChannelClosedError: If the client went away while the command ran
            SessionAbortedError: If the client went away during test or play
        """
        args = line.split()
        if not args:
            return True

        command = args[0].lower()
        if command in ('q', 'quit'):
            await self.quit_cmd(channel)
            return False

        handler = self._commands.get(command)
        if handler is None:
            await channel.error(f"Unknown command: '{args[0]}'.")
            await channel.send(f"Use {colorize('help', 'green')} to list commands.")
            return True

        self.logger.debug(f"Running '{command}' for {channel.name}")
        try:
            if command in self.ID_COMMANDS:
                await handler(channel, args[1] if len(args) > 1 else None)
            else:
                await handler(channel)
        except QuizValidationError as e:
            await channel.error("The quiz is invalid:")
            for message in e.errors:
                await channel.error(message)
        except (QuizControllerError, QuizStoreError) as e:
            await channel.error(str(e))
        return True

    def _get_quiz(self, raw_id: Optional[str]):
        quiz_id = validate_id(raw_id)
        quiz = self.store.find_by_id(quiz_id)
        if quiz is None:
            raise QuizNotFoundError(quiz_id)
        return quiz

    async def help_cmd(self, channel: InteractionChannel) -> None:
        for line in HELP_LINES:
            await channel.send(line)

    async def list_cmd(self, channel: InteractionChannel) -> None:
        for quiz in self.store.find_all():
            await channel.send(f"[{colorize(quiz.id, 'magenta')}]: {quiz.question}")

    async def show_cmd(self, channel: InteractionChannel, raw_id: Optional[str] = None) -> None:
        quiz = self._get_quiz(raw_id)
        await channel.send(
            f"[{colorize(quiz.id, 'magenta')}]: {quiz.question} {colorize('=>', 'magenta')} {quiz.answer}"
        )

    async def add_cmd(self, channel: InteractionChannel) -> None:
        question = await channel.ask("Enter a question: ", color='red')
        answer = await channel.ask("Enter the answer: ", color='red')
        quiz = self.store.create(question, answer)
        await channel.send(
            f"{colorize('Added', 'magenta')}: {quiz.question} {colorize('=>', 'magenta')} {quiz.answer}"
        )

    async def delete_cmd(self, channel: InteractionChannel, raw_id: Optional[str] = None) -> None:
        quiz_id = validate_id(raw_id)
        if not self.store.destroy(quiz_id):
            raise QuizNotFoundError(quiz_id)
        await channel.send(f"Deleted quiz {colorize(quiz_id, 'magenta')}.")

    async def edit_cmd(self, channel: InteractionChannel, raw_id: Optional[str] = None) -> None:
        quiz = self._get_quiz(raw_id)
        question = await channel.ask("Enter a question: ", prefill=quiz.question, color='red')
        answer = await channel.ask("Enter the answer: ", prefill=quiz.answer, color='red')
        quiz = self.store.update(quiz.id, question, answer)
        await channel.send(
            f"Quiz {colorize(quiz.id, 'magenta')} changed to: {quiz.question} "
            f"{colorize('=>', 'magenta')} {quiz.answer}"
        )

    async def test_cmd(self, channel: InteractionChannel, raw_id: Optional[str] = None) -> SessionResult:
        quiz = self._get_quiz(raw_id)
        return await self.engine.run_single(quiz, channel)

    async def play_cmd(self, channel: InteractionChannel) -> SessionResult:
        return await self.engine.run_deck(self.store.find_all(), channel)

    async def credits_cmd(self, channel: InteractionChannel) -> None:
        await channel.send("Authors:")
        for author in AUTHORS:
            await channel.send(author, 'green')

    async def quit_cmd(self, channel: InteractionChannel) -> None:
        await channel.send("Bye!")

    def get_command_names(self) -> List[str]:
        return sorted(self._commands) + ['q', 'quit']
