"""WebSocket chat transport for the contest bot.

Chat gateways connect over WebSocket and forward user events as JSON:

    {"user_id": "42", "text": "team@example.com"}
    {"user_id": "42", "button": "get_task"}

Events from every connection go through one queue and are handled one at a
time. Replies go back on the connection the user last wrote from:

    {"user_id": "42", "text": "...", "buttons": [{"label": "...", "data": "..."}],
     "document": {"filename": "...", "content": "<base64>"}}

Frames with an ``action`` are organizer and company requests; see
``control.py``. They share the queue so storage sees one writer at a time.
"""

import asyncio
import base64
import json
from pathlib import Path

import aiofiles
from loguru import logger
from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from .config.settings import Settings
from .control import ControlHandler, Principal
from .models import ConversationState, Reply
from .state_machine import ConversationStateMachine


class BotServer:
    """Receives chat events, drives the state machine and sends replies."""

    def __init__(
        self,
        settings: Settings,
        state_machine: ConversationStateMachine,
        control: ControlHandler,
    ):
        self.settings = settings
        self.state_machine = state_machine
        self.control = control
        self.updates: asyncio.Queue[tuple[ServerConnection, dict]] = asyncio.Queue()
        self.connections: dict[str, ServerConnection] = {}
        self.principals: dict[ServerConnection, Principal] = {}
        self._background: set[asyncio.Task] = set()

    @staticmethod
    def parse_event(message: str | bytes) -> dict:
        """Validate an inbound frame."""
        try:
            event = json.loads(message)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}") from e
        if isinstance(event, dict) and "action" in event:
            if not isinstance(event["action"], str):
                raise ValueError("Action must be a string")
            if not isinstance(event.setdefault("params", {}), dict):
                raise ValueError("Params must be an object")
            return event
        if not isinstance(event, dict) or not event.get("user_id"):
            raise ValueError("Event must be an object with a user_id")
        if not isinstance(event.get("text"), str) and not isinstance(event.get("button"), str):
            raise ValueError("Event must carry text or button")
        event["user_id"] = str(event["user_id"])
        return event

    async def handle_connection(self, websocket: ServerConnection) -> None:
        """Queue every event arriving on a gateway connection."""
        remote = websocket.remote_address
        logger.info("Gateway connected from {}", remote)

        try:
            async for message in websocket:
                try:
                    event = self.parse_event(message)
                except ValueError as e:
                    await websocket.send(json.dumps({"error": str(e)}))
                    continue
                if "action" not in event:
                    self.connections[event["user_id"]] = websocket
                await self.updates.put((websocket, event))
        except ConnectionClosed as e:
            logger.warning("Gateway {} dropped: {}", remote, e)
        finally:
            self.principals.pop(websocket, None)
            for user_id, connection in list(self.connections.items()):
                if connection is websocket:
                    del self.connections[user_id]
            logger.info("Gateway {} disconnected", remote)

    async def consume_updates(self) -> None:
        """Single consumer: handles queued events strictly in order."""
        while True:
            connection, event = await self.updates.get()
            try:
                if "action" in event:
                    await self.process_control(connection, event)
                else:
                    await self.process_event(event)
            except Exception:
                logger.exception(
                    "Failed to process event {}", event.get("action") or event.get("user_id")
                )
            finally:
                self.updates.task_done()

    async def process_event(self, event: dict) -> None:
        user_id = event["user_id"]
        # Log receipt without exposing passwords or answers
        logger.debug("User {} sent {}", user_id, "button" if "button" in event else "text")

        before = self.state_machine.state_of(user_id)
        if isinstance(event.get("button"), str):
            reply = await self.state_machine.handle_button(user_id, event["button"])
        else:
            reply = await self.state_machine.handle_text(user_id, event["text"])
        await self.send_reply(user_id, reply)

        after = self.state_machine.state_of(user_id)
        if after == ConversationState.WAITING_APPROVE and before != after:
            self._spawn(self._wait_for_approval(user_id))

    async def process_control(self, connection: ServerConnection, event: dict) -> None:
        principal = self.principals.setdefault(connection, Principal())
        response = await self.control.handle(principal, event["action"], event["params"])
        if "request_id" in event:
            response["request_id"] = event["request_id"]
        try:
            await connection.send(json.dumps(response))
        except ConnectionClosed:
            logger.warning("Control connection closed, response to {} dropped", event["action"])

    async def send_reply(self, user_id: str, reply: Reply) -> None:
        connection = self.connections.get(user_id)
        if connection is None:
            logger.warning("No connection for user {}, reply dropped", user_id)
            return

        payload = {
            "user_id": user_id,
            "text": reply.text,
            "buttons": [{"label": b.label, "data": b.data} for b in reply.buttons],
        }
        if reply.document:
            payload["document"] = await self._encode_document(reply.document)

        try:
            await connection.send(json.dumps(payload))
        except ConnectionClosed:
            logger.warning("Connection for user {} closed, reply dropped", user_id)

    @staticmethod
    async def _encode_document(path: str) -> dict:
        async with aiofiles.open(path, "rb") as f:
            content = await f.read()
        return {
            "filename": Path(path).name,
            "content": base64.b64encode(content).decode("ascii"),
        }

    async def _wait_for_approval(self, user_id: str) -> None:
        reply = await self.state_machine.await_approval(user_id)
        if reply is not None:
            await self.send_reply(user_id, reply)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        task.add_done_callback(self._report_failure)

    @staticmethod
    def _report_failure(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.opt(exception=task.exception()).error("Background task failed")

    async def _handle_health_check(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Handle HTTP health check requests."""
        try:
            request = await reader.read(1024)
            if b"GET /health" in request or b"GET / " in request:
                response = (
                    b"HTTP/1.1 200 OK\r\n"
                    b"Content-Type: application/json\r\n"
                    b"Content-Length: 15\r\n"
                    b"\r\n"
                    b'{"status":"ok"}'
                )
            else:
                response = (
                    b"HTTP/1.1 404 Not Found\r\n"
                    b"Content-Length: 0\r\n"
                    b"\r\n"
                )
            writer.write(response)
            await writer.drain()
        finally:
            writer.close()
            await writer.wait_closed()

    async def _start_health_server(self) -> asyncio.Server:
        """Start the HTTP health check server."""
        host = self.settings.server.host
        health_port = self.settings.server.health_port
        server = await asyncio.start_server(
            self._handle_health_check, host, health_port
        )
        logger.info("Health check running on http://{}:{}/health", host, health_port)
        return server

    async def start(self) -> None:
        """Start the WebSocket server, the update consumer and the health check."""
        host = self.settings.server.host
        port = self.settings.server.port

        logger.info("Cyber-Chase bot listening on ws://{}:{}", host, port)

        health_server = await self._start_health_server()
        consumer = asyncio.create_task(self.consume_updates())

        try:
            async with health_server, serve(self.handle_connection, host, port) as ws_server:
                await ws_server.serve_forever()
        finally:
            consumer.cancel()
