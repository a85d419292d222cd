"""
Interaction channels: the per-client ask/answer primitive used by the engine.
"""
import asyncio
import logging
import sys
from abc import ABC, abstractmethod
from typing import List, Optional

from .output import banner_lines, colorize, error_line

logger = logging.getLogger(__name__)


class ChannelClosedError(Exception):
    """Raised when a channel is closed while an answer is outstanding."""
    pass


class InteractionChannel(ABC):
    """Asks questions of one client and writes report lines back to it."""

    name = "channel"

    @abstractmethod
    async def ask(self, prompt: str, prefill: Optional[str] = None,
                  color: Optional[str] = None) -> str:
        """
        Present a prompt and wait for the client's reply.

        Args:
            prompt: Text shown before the answer
            prefill: Text pre-typed into the answer where the client supports it
            color: Colour of the prompt where the client supports it

        Returns:
            The reply with surrounding whitespace removed

        Raises:
            ChannelClosedError: If the client went away before answering
        """

    @abstractmethod
    async def send(self, text: str, color: Optional[str] = None) -> None:
        """Write one line to the client."""

    async def error(self, message: str) -> None:
        await self.send(error_line(message))

    async def banner(self, text: str, color: Optional[str] = None) -> None:
        for line in banner_lines(text, color):
            await self.send(line)

    async def close(self) -> None:
        pass


class StreamChannel(InteractionChannel):
    """Channel over an asyncio stream pair, one line per answer."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                 encoding: str = "utf-8"):
        self.reader = reader
        self.writer = writer
        self.encoding = encoding
        self._closed = False
        peer = writer.get_extra_info('peername')
        self.name = f"{peer[0]}:{peer[1]}" if isinstance(peer, tuple) else str(peer)

    @property
    def closed(self) -> bool:
        return self._closed or self.writer.is_closing()

    async def _write(self, data: str) -> None:
        if self.closed:
            raise ChannelClosedError(f"Channel {self.name} is closed")
        try:
            self.writer.write(data.encode(self.encoding))
            await self.writer.drain()
        except (ConnectionError, OSError) as e:
            self._closed = True
            raise ChannelClosedError(f"Channel {self.name} lost: {e}") from e

    async def ask(self, prompt: str, prefill: Optional[str] = None,
                  color: Optional[str] = None) -> str:
        # Sockets are not terminals, so prefill is not offered here.
        await self._write(colorize(prompt, color))
        try:
            raw = await self.reader.readline()
        except (ConnectionError, OSError) as e:
            self._closed = True
            raise ChannelClosedError(f"Channel {self.name} lost: {e}") from e
        except (ValueError, asyncio.LimitOverrunError) as e:
            # Line longer than the stream buffer limit
            self._closed = True
            raise ChannelClosedError(f"Channel {self.name} sent an oversized line: {e}") from e
        if not raw:
            self._closed = True
            raise ChannelClosedError(f"Channel {self.name} closed by peer")
        return raw.decode(self.encoding, errors='replace').strip()

    async def send(self, text: str, color: Optional[str] = None) -> None:
        await self._write(colorize(text, color) + "\n")

    async def close(self) -> None:
        if self._closed and self.writer.is_closing():
            return
        self._closed = True
        try:
            self.writer.close()
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Ignoring error while closing {self.name}: {e}")


class ConsoleChannel(InteractionChannel):
    """Channel over the local terminal."""

    name = "console"

    def __init__(self, stdin=None, stdout=None):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout

    def _read_line(self, prompt: str, prefill: Optional[str]) -> str:
        self.stdout.write(prompt)
        self.stdout.flush()
        hook_set = False
        if prefill and self.stdin.isatty():
            try:
                import readline
                readline.set_startup_hook(lambda: readline.insert_text(prefill))
                hook_set = True
            except ImportError:
                pass
        try:
            if self.stdin is sys.stdin and self.stdin.isatty():
                line = input()
            else:
                line = self.stdin.readline()
                if not line:
                    raise EOFError
        finally:
            if hook_set:
                import readline
                readline.set_startup_hook()
        return line

    async def ask(self, prompt: str, prefill: Optional[str] = None,
                  color: Optional[str] = None) -> str:
        loop = asyncio.get_running_loop()
        try:
            line = await loop.run_in_executor(
                None, self._read_line, colorize(prompt, color), prefill
            )
        except EOFError as e:
            raise ChannelClosedError("Console input closed") from e
        return line.strip()

    async def send(self, text: str, color: Optional[str] = None) -> None:
        self.stdout.write(colorize(text, color) + "\n")
        self.stdout.flush()


class ScriptedChannel(InteractionChannel):
    """In-memory channel fed from a list of answers, for tests and demos."""

    name = "scripted"

    def __init__(self, answers: Optional[List[str]] = None):
        self.answers = list(answers or [])
        self.prompts: List[str] = []
        self.lines: List[str] = []

    async def ask(self, prompt: str, prefill: Optional[str] = None,
                  color: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        if not self.answers:
            raise ChannelClosedError("No more scripted answers")
        return str(self.answers.pop(0)).strip()

    async def send(self, text: str, color: Optional[str] = None) -> None:
        self.lines.append(text)
