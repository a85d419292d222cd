"""
Integration tests for the TCP quiz server.
"""
import asyncio
import logging
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from trivia_cli.bot import strip_ansi
from trivia_cli.data_manager import QuizStore
from trivia_cli.quiz_controller import QuizController
from trivia_cli.server import QuizServer
from tests.test_fixtures import AsyncTestHelpers, async_test


class TestQuizServer(unittest.TestCase):
    """End-to-end sessions over real sockets."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.store = QuizStore(str(Path(self.temp_dir) / "quizzes.json"))
        self.store.load()
        self.controller = QuizController(self.store)

        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up test fixtures."""
        logging.disable(logging.NOTSET)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def keep_only_first_quiz(self):
        for quiz in self.store.find_all()[1:]:
            self.store.destroy(quiz.id)

    async def start_server(self) -> QuizServer:
        server = QuizServer(self.controller, "127.0.0.1", 0)
        await server.start()
        return server

    async def converse(self, server: QuizServer, script: str) -> str:
        """Send every line of script up front and read until the server hangs up."""
        reader, writer = await asyncio.open_connection("127.0.0.1", server.port)
        writer.write(script.encode("utf-8"))
        await writer.drain()
        output = await AsyncTestHelpers.run_with_timeout(reader.read())
        writer.close()
        await writer.wait_closed()
        return strip_ansi(output.decode("utf-8"))

    async def wait_for_no_clients(self, server: QuizServer) -> None:
        async def poll():
            while server.client_count:
                await asyncio.sleep(0.01)
        await AsyncTestHelpers.run_with_timeout(poll())

    @async_test
    async def test_port_zero_binds_a_free_port(self):
        server = await self.start_server()
        try:
            self.assertGreater(server.port, 0)
            self.assertEqual(len(server.sockets), 1)
        finally:
            await server.stop()

    @async_test
    async def test_banner_list_and_quit(self):
        server = await self.start_server()
        try:
            output = await self.converse(server, "list\nquit\n")
        finally:
            await server.stop()

        self.assertIn("TRIVIA", output)
        self.assertIn("quiz > ", output)
        self.assertIn("[1]: Capital of Italy", output)
        self.assertIn("[4]: Capital of Portugal", output)
        self.assertTrue(output.rstrip().endswith("Bye!"))

    @async_test
    async def test_unknown_command_keeps_session_open(self):
        server = await self.start_server()
        try:
            output = await self.converse(server, "jump\nhelp\nq\n")
        finally:
            await server.stop()

        self.assertIn("Error: Unknown command: 'jump'.", output)
        self.assertIn("Commands:", output)
        self.assertIn("Bye!", output)

    @async_test
    async def test_play_correct_over_socket(self):
        self.keep_only_first_quiz()
        server = await self.start_server()
        try:
            output = await self.converse(server, "p\n  rome \nq\n")
        finally:
            await server.stop()

        self.assertIn("Capital of Italy? ", output)
        self.assertIn("CORRECT - 1 correct answer(s) so far.", output)
        self.assertIn("No more questions to ask.", output)
        self.assertIn("Game over. Score: 1", output)

    @async_test
    async def test_play_incorrect_over_socket(self):
        server = await self.start_server()
        try:
            output = await self.converse(server, "play\nAtlantis\nq\n")
        finally:
            await server.stop()

        self.assertIn("INCORRECT.", output)
        self.assertIn("Game over. Score: 0", output)

    @async_test
    async def test_add_is_visible_to_next_client(self):
        server = await self.start_server()
        try:
            await self.converse(server, "add\nCapital of Greece\nAthens\nq\n")
            output = await self.converse(server, "show 5\nq\n")
        finally:
            await server.stop()

        self.assertIn("[5]: Capital of Greece => Athens", output)

    @async_test
    async def test_client_leaving_mid_question(self):
        server = await self.start_server()
        try:
            reader, writer = await asyncio.open_connection("127.0.0.1", server.port)
            writer.write(b"p\n")
            await writer.drain()
            await AsyncTestHelpers.run_with_timeout(reader.readuntil(b"? "))
            writer.close()
            await writer.wait_closed()

            await self.wait_for_no_clients(server)
            # The server keeps serving other clients
            output = await self.converse(server, "q\n")
        finally:
            await server.stop()

        self.assertIn("Bye!", output)
        self.assertEqual(self.store.get_quiz_count(), 4)

    @async_test
    async def test_oversized_answer_abandons_session(self):
        server = await self.start_server()
        try:
            with patch("trivia_cli.quiz_engine.SessionLifecycleLogger.log_session_aborted") as aborted, \
                    patch("trivia_cli.server.logger.exception") as crashed:
                reader, writer = await asyncio.open_connection("127.0.0.1", server.port)
                writer.write(b"test 1\n")
                await writer.drain()
                await AsyncTestHelpers.run_with_timeout(reader.readuntil(b"? "))

                rest = b""
                try:
                    writer.write(b"x" * 100000 + b"\n")
                    await writer.drain()
                    rest = await AsyncTestHelpers.run_with_timeout(reader.read())
                except ConnectionError:
                    pass
                writer.close()

                await self.wait_for_no_clients(server)

            aborted.assert_called_once()
            crashed.assert_not_called()
            self.assertNotIn(b"Your answer is", rest)
            # The server keeps serving other clients
            output = await self.converse(server, "show 1\nq\n")
        finally:
            await server.stop()

        self.assertIn("[1]: Capital of Italy => Rome", output)

    @async_test
    async def test_concurrent_clients(self):
        self.keep_only_first_quiz()
        server = await self.start_server()
        try:
            outputs = await asyncio.gather(
                self.converse(server, "p\nRome\nq\n"),
                self.converse(server, "p\nMilan\nq\n"),
            )
        finally:
            await server.stop()

        self.assertIn("Game over. Score: 1", outputs[0])
        self.assertIn("Game over. Score: 0", outputs[1])

    @async_test
    async def test_stop_ends_idle_sessions(self):
        server = await self.start_server()
        reader, writer = await asyncio.open_connection("127.0.0.1", server.port)
        await AsyncTestHelpers.run_with_timeout(reader.readuntil(b"quiz > "))
        self.assertEqual(server.client_count, 1)

        await AsyncTestHelpers.run_with_timeout(server.stop())

        self.assertEqual(server.client_count, 0)
        self.assertEqual(await AsyncTestHelpers.run_with_timeout(reader.read()), b"")
        writer.close()


if __name__ == '__main__':
    unittest.main()
