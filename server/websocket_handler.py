"""
WebSocket command handling.

Translates inbound observer commands into SessionRegistry and Session calls
and answers protocol failures with coded error frames.
"""

import logging
from typing import Any

from fastapi import WebSocket

from core import (
    EventBus,
    ProtocolError,
    SessionRegistry,
    WorldlineResolver,
    branched_event,
    turn_completed_event,
)
from core.exceptions import CoreError, ErrorCode
from core.models import BranchResult

from .logging_config import log_timing
from .requests import (
    BranchRequest,
    ChatRequest,
    InboundCommand,
    InterruptRequest,
    ResumeRequest,
    SetOptionsRequest,
    parse_command,
)
from .session_client import WebSocketSessionClient

logger = logging.getLogger(__name__)


def error_frame(code: ErrorCode, message: str) -> dict[str, Any]:
    return {"type": "error", "error": message, "code": code.value}


class WebSocketHandler:
    """Routes commands from connected sockets to their sessions."""

    def __init__(self, registry: SessionRegistry, resolver: WorldlineResolver, event_bus: EventBus):
        self.registry = registry
        self.resolver = resolver
        self.event_bus = event_bus
        self._clients: dict[WebSocket, WebSocketSessionClient] = {}

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def client_for(self, websocket: WebSocket) -> WebSocketSessionClient | None:
        return self._clients.get(websocket)

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def on_open(self, websocket: WebSocket) -> WebSocketSessionClient:
        """Register a socket and attach it to a fresh session."""
        client = WebSocketSessionClient(websocket, on_turn_complete=self._on_turn_complete)
        client.start()
        self._clients[websocket] = client
        client.send({"type": "connected", "message": "Connected."})
        self.registry.subscribe(client)
        logger.info("WebSocket client connected (total=%d)", len(self._clients))
        return client

    async def on_close(self, websocket: WebSocket) -> None:
        client = self._clients.pop(websocket, None)
        if client is None:
            return
        self.registry.unsubscribe(client)
        await client.close()
        logger.info("WebSocket client disconnected (total=%d)", len(self._clients))

    async def on_message(self, websocket: WebSocket, raw: str | bytes) -> None:
        """
        Handle one inbound frame.

        Protocol errors are answered with an error frame; no session state is
        touched for a rejected command.
        """
        client = self._clients.get(websocket)
        if client is None:
            logger.warning("Message from unregistered WebSocket client")
            await websocket.send_json(
                error_frame(ErrorCode.UNREGISTERED_CLIENT, "Client is not registered")
            )
            return

        try:
            command = parse_command(raw)
            await self._dispatch(client, command)
        except ProtocolError as e:
            logger.warning("Rejected command (%s): %s", e.code.value, e.message)
            client.send(error_frame(e.code, e.message))

    async def _dispatch(self, client: WebSocketSessionClient, command: InboundCommand) -> None:
        if isinstance(command, ChatRequest):
            await self.handle_chat(client, command)
        elif isinstance(command, SetOptionsRequest):
            self.handle_set_options(client, command)
        elif isinstance(command, ResumeRequest):
            await self.handle_resume(client, command)
        elif isinstance(command, BranchRequest):
            await self.handle_branch(client, command)
        elif isinstance(command, InterruptRequest):
            self.handle_interrupt(client)

    # =========================================================================
    # Commands
    # =========================================================================

    async def handle_chat(self, client: WebSocketSessionClient, command: ChatRequest) -> None:
        content = command.content.strip()
        if not content:
            raise ProtocolError(ErrorCode.EMPTY_MESSAGE, "Message content cannot be empty")

        target = (command.sessionId or "").strip()
        if command.newConversation:
            self.registry.unsubscribe(client)
            client.session_id = None
            session = self.registry.create_session()
            session.subscribe(client)
            logger.debug("Started new conversation for client")
        elif target and target != client.session_id:
            self.registry.unsubscribe(client)
            session = self.registry.get_session(target)
            if session is None:
                session = self.registry.create_session()
                session.subscribe(client)
                await session.resume_from(target)
            else:
                session.subscribe(client)

        self.registry.send_message(client, content, command.attachments)

    def handle_set_options(self, client: WebSocketSessionClient, command: SetOptionsRequest) -> None:
        try:
            self.registry.set_options(client, command.options)
        except (ValueError, CoreError) as e:
            # pydantic's ValidationError is a ValueError
            raise ProtocolError(ErrorCode.SET_OPTIONS_FAILED, f"Invalid options: {e}") from e

    async def handle_resume(self, client: WebSocketSessionClient, command: ResumeRequest) -> None:
        target = command.sessionId.strip()
        if not target:
            raise ProtocolError(ErrorCode.INVALID_SESSION_ID, "Session id is required")

        if client.session_id != target:
            self.registry.unsubscribe(client)
        session = self.registry.get_session(target)
        if session is None:
            session = self.registry.create_session()
        session.subscribe(client)

        with log_timing(logger, f"Resume of {target}", level=logging.INFO):
            resumed = await session.resume_from(target)
        if not resumed:
            raise ProtocolError(ErrorCode.RESUME_FAILED, f"Failed to resume session: {session.error}")

    async def handle_branch(self, client: WebSocketSessionClient, command: BranchRequest) -> None:
        source = command.sourceSessionId.strip()
        branch_point = command.branchAtMessageUuid.strip()
        content = command.content.strip()
        if not source:
            raise ProtocolError(ErrorCode.INVALID_SOURCE_SESSION, "Source session id is required")
        if not branch_point:
            raise ProtocolError(ErrorCode.INVALID_BRANCH_POINT, "Branch message uuid is required")
        if not content:
            raise ProtocolError(ErrorCode.EMPTY_MESSAGE, "Message content cannot be empty")

        self.registry.unsubscribe(client)
        client.session_id = None
        session = self.registry.create_session()
        session.subscribe(client)

        try:
            result = await session.branch(source, branch_point, content, command.attachments)
        except Exception as e:
            logger.exception("Branch of %s at %s failed", source, branch_point)
            raise ProtocolError(ErrorCode.BRANCH_FAILED, f"Failed to branch: {e}") from e

        if not result.newSessionId:
            message = session.error or "Backend did not start a session"
            raise ProtocolError(ErrorCode.BRANCH_FAILED, f"Failed to branch: {message}")

        try:
            await self.on_branch_complete(result)
            worldlines = self.resolver.siblings_of(result.newSessionId)
        except Exception as e:
            logger.exception("Failed to record branch %s", result.newSessionId)
            raise ProtocolError(ErrorCode.BRANCH_FAILED, f"Failed to record branch: {e}") from e

        frame: dict[str, Any] = {
            "type": "branched",
            "sourceSessionId": source,
            "branchAtMessageUuid": branch_point,
            "newSessionId": result.newSessionId,
            "worldlines": [w.model_dump(mode="json") for w in worldlines],
        }
        if result.degradedReason:
            frame["degradedReason"] = result.degradedReason
        client.send(frame)

    async def on_branch_complete(self, result: BranchResult) -> None:
        """Persist the branch record and announce it on the event bus."""
        record = self.resolver.record_branch(result)
        await self.event_bus.publish(branched_event(record))

    def handle_interrupt(self, client: WebSocketSessionClient) -> None:
        if not self.registry.interrupt(client):
            logger.debug("Interrupt from client without a session")
        client.send({"type": "interrupted"})

    async def _on_turn_complete(self, client: WebSocketSessionClient, session_id: str | None) -> None:
        session = self.registry.get_session(session_id) if session_id else None
        summary = session.summary if session is not None else None
        try:
            await self.event_bus.publish(turn_completed_event(session_id, summary))
        except Exception:
            logger.exception("Failed to publish turn completion for %s", session_id)
