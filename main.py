#!/usr/bin/env python3
"""
Trivia CLI - Main Entry Point

Runs the trivia command front end over TCP, on the local terminal, or as a
Discord bot.

Usage:
    python main.py [serve|console|discord] [--config config.json]

Configuration:
    1. Copy config.json and adjust the server, quiz file and logging settings
    2. Or use the environment variables below

Environment Variables:
    QUIZ_SERVER_HOST: Address the TCP server binds to
    QUIZ_SERVER_PORT: Port the TCP server listens on
    QUIZ_FILE: Path of the JSON quiz file
    DISCORD_BOT_TOKEN: Your Discord bot token (overrides config.json)
"""

import argparse
import asyncio
import sys
import json
import logging
from pathlib import Path

from colorama import just_fix_windows_console

from trivia_cli.channels import ConsoleChannel
from trivia_cli.config_manager import ConfigManager
from trivia_cli.data_manager import QuizStore
from trivia_cli.quiz_controller import QuizController
from trivia_cli.server import QuizServer


def load_config(config_path: Path):
    """Load configuration from a JSON file. A missing file means defaults."""
    if not config_path.exists():
        return {}

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        print(f"❌ Error: Invalid JSON in {config_path}: {e}")
        sys.exit(1)
    except OSError as e:
        print(f"❌ Error loading {config_path}: {e}")
        sys.exit(1)


def setup_logging_from_config(config, console: bool = True):
    """Set up logging based on configuration."""
    log_config = config.get('logging', {})
    log_level = getattr(logging, log_config.get('level', 'INFO').upper(), logging.INFO)
    log_directory = Path(log_config.get('log_directory', './logs/'))

    # Create logs directory
    log_directory.mkdir(parents=True, exist_ok=True)

    handlers = [logging.FileHandler(log_directory / "quiz.log", encoding='utf-8')]
    # The console front end owns stdout
    if console:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )

    # Reduce discord.py noise
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)


def build_store(config_manager: ConfigManager) -> QuizStore:
    settings = config_manager.get_settings()
    store = QuizStore(settings.quiz_file, settings.seed_samples)
    store.load()
    for error in store.get_load_errors():
        print(f"⚠️ {error}")
    return store


async def run_server(config_manager: ConfigManager):
    settings = config_manager.get_settings()
    controller = QuizController(build_store(config_manager))
    server = QuizServer(controller, settings.host, settings.port)
    await server.start()
    print(f"🧠 Trivia server listening on {settings.host}:{server.port}")
    try:
        await server.serve_forever()
    finally:
        await server.stop()


async def run_console(config_manager: ConfigManager):
    controller = QuizController(build_store(config_manager))
    await controller.run_client(ConsoleChannel())


async def run_discord(config_manager: ConfigManager):
    from trivia_cli.bot import run_bot
    await run_bot(config_manager, build_store(config_manager))


MODES = {
    'serve': run_server,
    'console': run_console,
    'discord': run_discord,
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Multi-session trivia CLI")
    parser.add_argument('mode', nargs='?', default='serve', choices=sorted(MODES))
    parser.add_argument('--config', default='config.json', help="path of the JSON configuration file")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    config = load_config(Path(args.config))
    setup_logging_from_config(config, console=args.mode != 'console')
    just_fix_windows_console()

    config_manager = ConfigManager()
    result = config_manager.apply_config(config)
    for error in result['errors']:
        print(f"⚠️ Ignoring setting: {error}")

    if args.mode == 'discord' and not config_manager.get_discord_token():
        print("❌ Error: Discord bot token not configured!")
        print("Either:")
        print("  1. Set DISCORD_BOT_TOKEN environment variable")
        print("  2. Update the 'discord.token' field in config.json")
        sys.exit(1)

    try:
        asyncio.run(MODES[args.mode](config_manager))
    except KeyboardInterrupt:
        print("\n👋 Stopped by user")


if __name__ == "__main__":
    main()
