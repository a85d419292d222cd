import discord
from discord.ext import commands
import asyncio
import logging
import re
from typing import Dict, Optional, Set, Tuple

from .channels import ChannelClosedError, InteractionChannel
from .config_manager import ConfigManager
from .data_manager import QuizStore
from .quiz_controller import QuizController
from .quiz_engine import SessionAbortedError

logger = logging.getLogger(__name__)

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")

EMBED_COLORS: Dict[str, int] = {
    'green': 0x00ff00,
    'red': 0xff0000,
    'magenta': 0xff00ff,
    'blue': 0x6699ff,
    'yellow': 0xffaa00,
}


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE.sub("", text)


class DiscordChannel(InteractionChannel):
    """Channel over a Discord text channel, answering with the author's next message."""

    def __init__(self, bot: commands.Bot, destination, author, timeout: Optional[float] = None):
        self.bot = bot
        self.destination = destination
        self.author = author
        self.timeout = timeout
        self.name = f"discord:{destination.id}:{author.id}"

    def _is_answer(self, message: discord.Message) -> bool:
        return message.author.id == self.author.id and message.channel.id == self.destination.id

    async def _send(self, **kwargs) -> None:
        try:
            await self.destination.send(**kwargs)
        except discord.HTTPException as e:
            raise ChannelClosedError(f"Failed to send to {self.name}: {e}") from e

    async def ask(self, prompt: str, prefill: Optional[str] = None,
                  color: Optional[str] = None) -> str:
        text = strip_ansi(prompt).strip()
        if prefill:
            text += f"\n(current: `{prefill}`)"
        await self._send(content=f"{self.author.mention} {text}")
        try:
            message = await self.bot.wait_for('message', check=self._is_answer, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ChannelClosedError(f"No answer from {self.name} within {self.timeout}s") from e
        return message.content.strip()

    async def send(self, text: str, color: Optional[str] = None) -> None:
        text = strip_ansi(text)
        if text.strip():
            await self._send(content=text)

    async def banner(self, text: str, color: Optional[str] = None) -> None:
        embed = discord.Embed(
            title=strip_ansi(str(text)),
            color=EMBED_COLORS.get(color, 0x6699ff)
        )
        await self._send(embed=embed)


class QuizBot(commands.Bot):
    """Discord bot exposing the trivia commands as `<prefix>quiz <command>`."""

    def __init__(self, config_manager: Optional[ConfigManager] = None,
                 store: Optional[QuizStore] = None):
        intents = discord.Intents.default()
        intents.message_content = True  # Answers are read from plain messages

        self.config_manager = config_manager or ConfigManager()
        settings = self.config_manager.get_settings()

        super().__init__(
            command_prefix=settings.command_prefix,
            intents=intents,
            help_command=None
        )

        self.answer_timeout = settings.answer_timeout
        self.store = store
        self.quiz_controller: Optional[QuizController] = None
        # (channel id, author id) pairs with a command in progress
        self._active: Set[Tuple[int, int]] = set()

    async def setup_hook(self):
        """Called when the bot is starting up"""
        logger.info("Setting up bot components...")
        if self.store is None:
            settings = self.config_manager.get_settings()
            self.store = QuizStore(settings.quiz_file, settings.seed_samples)
            self.store.load()
        self.quiz_controller = QuizController(self.store)

        @self.command(name="quiz")
        async def quiz_command(ctx: commands.Context, *, line: str = "help"):
            await self.handle_quiz(ctx, line)

        logger.info("Bot setup completed successfully")

    async def on_ready(self):
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")

    async def on_command_error(self, ctx, error):
        """Handle command errors"""
        if isinstance(error, commands.CommandNotFound):
            return
        logger.error(f"Command error in {ctx.command}: {error}")
        await self.send_error_response(ctx, "An error occurred while processing your command.")

    def is_busy(self, channel_id: int, author_id: int) -> bool:
        return (channel_id, author_id) in self._active

    async def handle_quiz(self, ctx: commands.Context, line: str) -> None:
        """
        Run one trivia command for the author of ctx.

        Each author may run one command per channel at a time, since their
        plain messages are read as answers while it runs.
        """
        key = (ctx.channel.id, ctx.author.id)
        if key in self._active:
            await self.send_error_response(
                ctx, "Finish your current question first.", "⚠️ Command in progress"
            )
            return

        channel = DiscordChannel(self, ctx.channel, ctx.author, self.answer_timeout)
        self._active.add(key)
        try:
            await self.quiz_controller.handle_line(channel, line)
        except SessionAbortedError as e:
            logger.info(f"Session aborted on {channel.name}: {e}")
            await self.send_error_response(
                ctx, f"Session abandoned. Score so far: {e.state.score}", "⌛ Session abandoned"
            )
        except ChannelClosedError as e:
            logger.info(f"Command abandoned on {channel.name}: {e}")
        finally:
            self._active.discard(key)

    async def send_error_response(self, ctx, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xff0000
            )
            embed.set_footer(text=f"Use {self.command_prefix}quiz help for available commands")
            await ctx.send(embed=embed)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")


async def run_bot(config_manager: ConfigManager, store: Optional[QuizStore] = None):
    """Run the bot until it is closed"""
    token = config_manager.get_discord_token()
    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config_manager, store)
    try:
        logger.info("Starting Discord trivia bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
