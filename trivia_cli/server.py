"""
Line-oriented TCP server: one command session per connection.
"""
import asyncio
import logging
from typing import Optional, Set

from .channels import ChannelClosedError, StreamChannel
from .quiz_controller import QuizController

logger = logging.getLogger(__name__)


class QuizServer:
    """Accepts TCP clients and runs a controller session for each of them."""

    def __init__(self, controller: QuizController, host: str = "127.0.0.1", port: int = 3030):
        self.controller = controller
        self.host = host
        self.port = port
        self._server: Optional[asyncio.AbstractServer] = None
        self._clients: Set[asyncio.Task] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def sockets(self):
        return self._server.sockets if self._server else []

    async def start(self) -> None:
        """Bind the listening socket. Port 0 picks a free port."""
        self._server = await asyncio.start_server(self._handle_connection, self.host, self.port)
        bound = self._server.sockets[0].getsockname()
        self.port = bound[1]
        logger.info(f"Quiz server listening on {bound[0]}:{bound[1]}")

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        async with self._server:
            await self._server.serve_forever()

    async def _handle_connection(self, reader: asyncio.StreamReader,
                                 writer: asyncio.StreamWriter) -> None:
        channel = StreamChannel(reader, writer)
        task = asyncio.current_task()
        self._clients.add(task)
        logger.info(f"Client connected: {channel.name} ({self.client_count} connected)")
        try:
            await channel.banner("Trivia", 'green')
            await self.controller.run_client(channel)
        except ChannelClosedError as e:
            logger.info(f"Client {channel.name} left before the session started: {e}")
        except asyncio.CancelledError:
            logger.info(f"Client session cancelled: {channel.name}")
            raise
        except Exception as e:
            logger.exception(f"Unexpected error in client session {channel.name}: {e}")
        finally:
            self._clients.discard(task)
            await channel.close()
            logger.info(f"Client disconnected: {channel.name} ({self.client_count} connected)")

    async def stop(self) -> None:
        """Stop accepting clients and end the running sessions."""
        server, self._server = self._server, None
        if server is not None:
            server.close()
        clients = list(self._clients)
        for task in clients:
            task.cancel()
        if clients:
            await asyncio.gather(*clients, return_exceptions=True)
        if server is not None:
            await server.wait_closed()
        logger.info("Quiz server stopped")
