"""
Configuration manager for trivia CLI settings.
"""
import logging
import os
from typing import Any, Dict, Optional

from .models import ServerSettings


class ConfigManager:
    """Manages server, store and Discord settings."""

    # Default configuration values
    DEFAULT_HOST = "127.0.0.1"
    DEFAULT_PORT = 3030
    DEFAULT_QUIZ_FILE = "./quizzes.json"
    DEFAULT_SEED_SAMPLES = True
    DEFAULT_COMMAND_PREFIX = "!"
    DEFAULT_ANSWER_TIMEOUT = 120

    # Validation limits
    MIN_PORT = 1
    MAX_PORT = 65535
    MIN_ANSWER_TIMEOUT = 5
    MAX_ANSWER_TIMEOUT = 3600  # 1 hour

    # Environment variables that override the configuration file
    ENV_HOST = "QUIZ_SERVER_HOST"
    ENV_PORT = "QUIZ_SERVER_PORT"
    ENV_QUIZ_FILE = "QUIZ_FILE"
    ENV_DISCORD_TOKEN = "DISCORD_BOT_TOKEN"

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._settings = ServerSettings()
        self._discord_token: Optional[str] = None

    def get_settings(self) -> ServerSettings:
        """
        Get a copy of the current settings.

        Returns:
            ServerSettings object with current configuration
        """
        return ServerSettings(
            host=self._settings.host,
            port=self._settings.port,
            quiz_file=self._settings.quiz_file,
            seed_samples=self._settings.seed_samples,
            command_prefix=self._settings.command_prefix,
            answer_timeout=self._settings.answer_timeout
        )

    def set_host(self, host: str) -> Dict[str, any]:
        """
        Set the address the TCP server listens on.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(host, str) or not host.strip():
            error_msg = f"Host must be a non-empty string, got {host!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "Invalid host: expected an address such as 127.0.0.1"
            }

        self._settings.host = host.strip()
        self.logger.info(f"Host set to {self._settings.host}")
        return {
            'success': True,
            'message': f"Host set to {self._settings.host}",
            'user_message': f"Server will listen on {self._settings.host}"
        }

    def set_port(self, port: int) -> Dict[str, any]:
        """
        Set the TCP port with range validation.

        Args:
            port: Port number, or a string holding one

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(port, str) and port.strip().isdigit():
            port = int(port.strip())

        if not isinstance(port, int) or isinstance(port, bool):
            error_msg = f"Port must be an integer, got {type(port).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"Invalid input: Expected a number, got {type(port).__name__}"
            }

        if port < self.MIN_PORT or port > self.MAX_PORT:
            error_msg = f"Port must be between {self.MIN_PORT} and {self.MAX_PORT}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"Port out of range: use {self.MIN_PORT}-{self.MAX_PORT}"
            }

        self._settings.port = port
        self.logger.info(f"Port set to {port}")
        return {
            'success': True,
            'message': f"Port set to {port}",
            'user_message': f"Server will listen on port {port}"
        }

    def set_quiz_file(self, quiz_file: str) -> Dict[str, any]:
        """
        Set the path of the JSON quiz file.

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if not isinstance(quiz_file, str):
            error_msg = f"Quiz file must be a string, got {type(quiz_file).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"Invalid input: Expected a path string, got {type(quiz_file).__name__}"
            }

        if not quiz_file.strip():
            error_msg = "Quiz file cannot be empty"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "Quiz file path cannot be empty"
            }

        if os.path.isdir(quiz_file):
            error_msg = f"Quiz file is a directory: {quiz_file}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"Quiz file must be a file, not a directory: {quiz_file}"
            }

        self._settings.quiz_file = quiz_file
        self.logger.info(f"Quiz file set to {quiz_file}")
        return {
            'success': True,
            'message': f"Quiz file set to {quiz_file}",
            'user_message': f"Quizzes will be stored in {quiz_file}"
        }

    def set_seed_samples(self, seed_samples: bool) -> Dict[str, any]:
        if not isinstance(seed_samples, bool):
            error_msg = f"Seed samples must be a boolean, got {type(seed_samples).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"Invalid input: Expected true/false, got {type(seed_samples).__name__}"
            }

        self._settings.seed_samples = seed_samples
        return {
            'success': True,
            'message': f"Seed samples set to {seed_samples}",
            'user_message': "Sample quizzes will be created for a new quiz file"
            if seed_samples else "New quiz files will start empty"
        }

    def set_command_prefix(self, prefix: str) -> Dict[str, any]:
        if not isinstance(prefix, str) or not prefix.strip() or any(c.isspace() for c in prefix):
            error_msg = f"Command prefix must be a non-empty string without spaces, got {prefix!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "Invalid command prefix"
            }

        self._settings.command_prefix = prefix
        self.logger.info(f"Command prefix set to {prefix}")
        return {
            'success': True,
            'message': f"Command prefix set to {prefix}",
            'user_message': f"Use {prefix}quiz to talk to the bot"
        }

    def set_answer_timeout(self, seconds: Optional[int]) -> Dict[str, any]:
        """
        Set how long the Discord channel waits for an answer.

        Args:
            seconds: Timeout in seconds, or None to wait forever

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if seconds is None:
            self._settings.answer_timeout = None
            self.logger.info("Answer timeout disabled")
            return {
                'success': True,
                'message': "Answer timeout disabled",
                'user_message': "The bot will wait for answers indefinitely"
            }

        if not isinstance(seconds, int) or isinstance(seconds, bool):
            error_msg = f"Answer timeout must be an integer, got {type(seconds).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"Invalid input: Expected a number, got {type(seconds).__name__}"
            }

        if seconds < self.MIN_ANSWER_TIMEOUT:
            error_msg = f"Answer timeout must be at least {self.MIN_ANSWER_TIMEOUT} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"Timeout too short: Minimum is {self.MIN_ANSWER_TIMEOUT} seconds"
            }

        if seconds > self.MAX_ANSWER_TIMEOUT:
            error_msg = f"Answer timeout cannot exceed {self.MAX_ANSWER_TIMEOUT} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"Timeout too long: Maximum is {self.MAX_ANSWER_TIMEOUT} seconds"
            }

        self._settings.answer_timeout = seconds
        self.logger.info(f"Answer timeout set to {seconds} seconds")
        return {
            'success': True,
            'message': f"Answer timeout set to {seconds} seconds",
            'user_message': f"Answers will be awaited for {seconds} seconds"
        }

    def get_discord_token(self) -> Optional[str]:
        return self._discord_token

    def apply_config(self, config: Dict[str, Any]) -> Dict[str, any]:
        """
        Apply a parsed config.json dictionary, then environment overrides.

        Invalid values are logged and reported, the defaults stay in place.

        Returns:
            Dictionary with success status and the list of rejected settings
        """
        failures = []

        def apply(result: Dict[str, any]) -> None:
            if not result['success']:
                failures.append(result['error'])

        server_config = config.get('server', {})
        if 'host' in server_config:
            apply(self.set_host(server_config['host']))
        if 'port' in server_config:
            apply(self.set_port(server_config['port']))

        quiz_config = config.get('quiz', {})
        if 'quiz_file' in quiz_config:
            apply(self.set_quiz_file(quiz_config['quiz_file']))
        if 'seed_samples' in quiz_config:
            apply(self.set_seed_samples(quiz_config['seed_samples']))

        discord_config = config.get('discord', {})
        if 'command_prefix' in discord_config:
            apply(self.set_command_prefix(discord_config['command_prefix']))
        if 'answer_timeout' in discord_config:
            apply(self.set_answer_timeout(discord_config['answer_timeout']))
        token = discord_config.get('token')
        if token and token != "YOUR_DISCORD_BOT_TOKEN_HERE":
            self._discord_token = token

        # Environment variables take precedence
        if os.getenv(self.ENV_HOST):
            apply(self.set_host(os.getenv(self.ENV_HOST)))
        if os.getenv(self.ENV_PORT):
            apply(self.set_port(os.getenv(self.ENV_PORT)))
        if os.getenv(self.ENV_QUIZ_FILE):
            apply(self.set_quiz_file(os.getenv(self.ENV_QUIZ_FILE)))
        if os.getenv(self.ENV_DISCORD_TOKEN):
            self._discord_token = os.getenv(self.ENV_DISCORD_TOKEN)

        if failures:
            self.logger.warning(f"Ignored {len(failures)} invalid configuration value(s)")
        return {'success': not failures, 'errors': failures}

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._settings = ServerSettings(
            host=self.DEFAULT_HOST,
            port=self.DEFAULT_PORT,
            quiz_file=self.DEFAULT_QUIZ_FILE,
            seed_samples=self.DEFAULT_SEED_SAMPLES,
            command_prefix=self.DEFAULT_COMMAND_PREFIX,
            answer_timeout=self.DEFAULT_ANSWER_TIMEOUT
        )
        self._discord_token = None
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        if not isinstance(self._settings.host, str) or not self._settings.host.strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid host: {self._settings.host}")

        if (not isinstance(self._settings.port, int) or
                self._settings.port < self.MIN_PORT or
                self._settings.port > self.MAX_PORT):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid port: {self._settings.port}")

        if not isinstance(self._settings.quiz_file, str) or not self._settings.quiz_file.strip():
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid quiz file: {self._settings.quiz_file}")

        timeout = self._settings.answer_timeout
        if timeout is not None and (
                not isinstance(timeout, int) or
                timeout < self.MIN_ANSWER_TIMEOUT or
                timeout > self.MAX_ANSWER_TIMEOUT):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid answer timeout: {timeout}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        timeout_str = (
            f"{self._settings.answer_timeout} seconds"
            if self._settings.answer_timeout is not None
            else "none"
        )
        return (
            f"Trivia Settings:\n"
            f"• Address: {self._settings.host}:{self._settings.port}\n"
            f"• Quiz File: {self._settings.quiz_file}\n"
            f"• Sample Quizzes: {'on' if self._settings.seed_samples else 'off'}\n"
            f"• Discord Prefix: {self._settings.command_prefix}\n"
            f"• Answer Timeout: {timeout_str}"
        )
