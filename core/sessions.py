"""
Conversation session state machine.

A ``Session`` tracks one logical conversation with the agent backend. It
serializes queries, streams backend turns into its message list, broadcasts
changes to subscribed observers and can fork the conversation at an earlier
message (a branch).
"""

import asyncio
import logging
import time
import uuid
from typing import Any, AsyncIterator, Iterable

from config.defaults import DEFAULT_SYSTEM_PROMPT, REPORT_MODE_INSTRUCTIONS, SUMMARY_MAX_LENGTH
from config.loader import merge_configs

from .messages import build_user_message_content, convert_turns, ingest
from .models import (
    AttachmentPayload,
    BranchResult,
    ChatMessage,
    DegradedReason,
    MessageAdded,
    MessagesUpdated,
    MessageUpdated,
    ResultTurn,
    SessionInfo,
    SessionNotification,
    SessionOptions,
    SessionStateChanged,
    SessionStateUpdate,
    SystemTurn,
    Turn,
    TurnPayload,
    UserTurn,
    content_blocks,
    extract_timestamp,
    turn_text,
)
from .protocols import AgentBackend, QueryRequest, SessionClient

logger = logging.getLogger(__name__)


def normalize_cwd(value: Any) -> str | None:
    """Strip a working directory value; blank values become None."""
    if not isinstance(value, str):
        return None
    return value.strip() or None


def summarize_prompt(text: str) -> str:
    text = " ".join(text.split())
    if len(text) > SUMMARY_MAX_LENGTH:
        return text[:SUMMARY_MAX_LENGTH] + "..."
    return text


def derive_summary(turns: Iterable[Turn]) -> str | None:
    """Summary of a transcript: its first user prompt, truncated."""
    for turn in turns:
        if isinstance(turn, UserTurn) and not turn.parent_tool_use_id:
            text = turn_text(turn).strip()
            if text:
                return summarize_prompt(text)
    return None


def detect_workspace(turns: Iterable[Turn]) -> str | None:
    """Working directory reported by the first system turn that has one."""
    for turn in turns:
        if isinstance(turn, SystemTurn) and turn.cwd:
            return turn.cwd
    return None


async def _single_turn(turn: UserTurn) -> AsyncIterator[UserTurn]:
    yield turn


class Session:
    """
    One conversation with the agent backend.

    At most one query runs at a time: ``send`` and ``branch`` serialize on a
    lock, and the running backend consumption is held as a task so that
    ``interrupt`` can cancel it. Observers get deep copies of messages, never
    the live list.
    """

    def __init__(self, backend: AgentBackend, defaults: SessionOptions | None = None):
        self.session_id: str | None = None
        self.summary: str | None = None
        self.error: str | None = None
        self.last_modified_time = time.time()

        self._backend = backend
        self._defaults = defaults or SessionOptions()
        self._overrides: dict[str, Any] = {}
        self._messages: list[ChatMessage] = []
        self._clients: list[SessionClient] = []
        self._busy = False
        self._loading = False
        self._is_loaded = False

        self._query_lock = asyncio.Lock()
        self._query_task: asyncio.Task[None] | None = None
        self._abort_event: asyncio.Event | None = None
        self._interrupt_requested = False
        self._interrupt_epoch = 0
        self._loading_task: asyncio.Task[bool] | None = None
        self._pending_echo: UserTurn | None = None

    # =========================================================================
    # State
    # =========================================================================

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def is_loaded(self) -> bool:
        return self._is_loaded

    @property
    def messages(self) -> list[ChatMessage]:
        """Snapshot of the message list."""
        return [m.model_copy(deep=True) for m in self._messages]

    @property
    def options(self) -> SessionOptions:
        """Effective options: defaults merged with this session's overrides."""
        return SessionOptions(**merge_configs(self._defaults.model_dump(), self._overrides))

    def query_options(self) -> SessionOptions:
        """Options handed to the backend, with the system prompt assembled."""
        options = self.options
        prompt = options.system_prompt or DEFAULT_SYSTEM_PROMPT
        if options.report_mode:
            prompt += REPORT_MODE_INSTRUCTIONS
        return options.model_copy(update={"system_prompt": prompt})

    def has_client(self, client: SessionClient) -> bool:
        return any(c is client for c in self._clients)

    def state_snapshot(self) -> SessionStateUpdate:
        return SessionStateUpdate(
            isBusy=self._busy,
            isLoading=self._loading,
            options=self.options.public_dump(),
            error=self.error,
        )

    def info(self) -> SessionInfo:
        return SessionInfo(
            sessionId=self.session_id,
            summary=self.summary,
            lastModifiedTime=self.last_modified_time,
            isBusy=self._busy,
            isLoading=self._loading,
            messageCount=len(self._messages),
            error=self.error,
        )

    def _set_busy(self, busy: bool) -> None:
        if self._busy == busy:
            return
        self._busy = busy
        self._emit_state(SessionStateUpdate(isBusy=busy))

    def _set_loading(self, loading: bool) -> None:
        if self._loading == loading:
            return
        self._loading = loading
        self._emit_state(SessionStateUpdate(isLoading=loading))

    def _update_session_id(self, session_id: str | None) -> None:
        if self.session_id == session_id:
            return
        logger.debug("Session id %s -> %s", self.session_id, session_id)
        self.session_id = session_id
        for client in list(self._clients):
            client.session_id = session_id

    def _clear_error(self) -> None:
        if self.error is None:
            return
        self.error = None
        self._emit_state(SessionStateUpdate(error=None))

    def set_options(self, partial: dict[str, Any]) -> None:
        """
        Merge a partial options update over the current overrides.

        A blank ``cwd`` removes the override so the default applies again.

        Raises:
            pydantic.ValidationError: If the merged options are invalid
        """
        update = dict(partial)
        overrides = dict(self._overrides)
        if "cwd" in update:
            cwd = normalize_cwd(update.pop("cwd"))
            if cwd is None:
                overrides.pop("cwd", None)
            else:
                update["cwd"] = cwd
        overrides = merge_configs(overrides, update)

        # Validate before committing
        SessionOptions(**merge_configs(self._defaults.model_dump(), overrides))
        self._overrides = overrides
        self._emit_state(SessionStateUpdate(options=self.options.public_dump()))

    # =========================================================================
    # Observers
    # =========================================================================

    def subscribe(self, client: SessionClient) -> None:
        """
        Attach an observer.

        The observer immediately receives the current state and, when this
        session holds history, the full message list.
        """
        if self.has_client(client):
            return
        self._clients.append(client)
        client.session_id = self.session_id
        logger.debug(
            "Client subscribed to %s (messages=%d, loaded=%s)",
            self.session_id or "uninitialized",
            len(self._messages),
            self._is_loaded,
        )
        self._deliver(
            client, SessionStateChanged(sessionId=self.session_id, state=self.state_snapshot())
        )
        if self._is_loaded or self._messages:
            self._deliver(client, MessagesUpdated(sessionId=self.session_id, messages=self.messages))

    def unsubscribe(self, client: SessionClient) -> None:
        self._clients = [c for c in self._clients if c is not client]

    def _deliver(self, client: SessionClient, notification: SessionNotification) -> None:
        try:
            client.receive_session_message(notification)
        except Exception:
            logger.exception("Failed to deliver %s to client", notification.type)

    def _broadcast(self, notification: SessionNotification) -> None:
        # Copy so callbacks may subscribe or unsubscribe during delivery
        for client in list(self._clients):
            self._deliver(client, notification)

    def _emit_state(self, update: SessionStateUpdate) -> None:
        self._broadcast(SessionStateChanged(sessionId=self.session_id, state=update))

    # =========================================================================
    # Incoming turns
    # =========================================================================

    def _append(self, turn: Turn) -> None:
        result = ingest(self._messages, turn)
        if result.added_message is not None:
            self._broadcast(
                MessageAdded(
                    sessionId=self.session_id,
                    message=result.added_message.model_copy(deep=True),
                )
            )
        for message in result.updated_messages:
            self._broadcast(
                MessageUpdated(sessionId=self.session_id, message=message.model_copy(deep=True))
            )

    def _is_local_echo(self, turn: Turn) -> bool:
        pending = self._pending_echo
        if pending is None or not isinstance(turn, UserTurn):
            return False
        if turn.uuid is not None and turn.uuid == pending.uuid:
            return True
        return _content_key(turn) == _content_key(pending)

    def process_incoming_message(self, turn: Turn) -> None:
        """
        Apply one backend turn.

        Adopts a backend-assigned session id, appends the turn (skipping the
        backend's echo of the local user turn), refreshes the modification
        time and derives busy state from run start and result turns.
        """
        if turn.session_id and turn.session_id != self.session_id:
            self._update_session_id(turn.session_id)

        if self._is_local_echo(turn):
            self._pending_echo = None
        else:
            self._append(turn)

        timestamp = extract_timestamp(turn.timestamp)
        self.last_modified_time = timestamp if timestamp is not None else time.time()

        if isinstance(turn, SystemTurn):
            if turn.subtype == "init":
                self._set_busy(True)
        elif isinstance(turn, ResultTurn):
            self._set_busy(False)

    # =========================================================================
    # Queries
    # =========================================================================

    def _build_user_turn(
        self, prompt: str, attachments: Iterable[AttachmentPayload] | None
    ) -> UserTurn:
        return UserTurn(
            uuid=str(uuid.uuid4()),
            message=TurnPayload(
                role="user",
                content=build_user_message_content(prompt, attachments),
            ),
            timestamp=time.time(),
        )

    def _echo(self, turn: UserTurn) -> None:
        self._pending_echo = turn
        self._append(turn)

    async def _consume(self, user_turn: UserTurn, request: QueryRequest) -> None:
        stream = self._backend.stream_turns(_single_turn(user_turn), request)
        try:
            async for turn in stream:
                self.process_incoming_message(turn)
        except Exception as e:
            logger.exception("Query failed for session %s", self.session_id)
            self.error = str(e) or type(e).__name__
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _run_query(self, user_turn: UserTurn, request: QueryRequest, epoch: int) -> None:
        if epoch != self._interrupt_epoch:
            request.abort_event.set()
            self._pending_echo = None
            logger.info("Query for session %s interrupted before it started", self.session_id)
            self._set_busy(False)
            return

        self._abort_event = request.abort_event
        self._interrupt_requested = False
        self._set_busy(True)
        self._query_task = asyncio.create_task(self._consume(user_turn, request))
        try:
            await self._query_task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if not self._interrupt_requested or (current is not None and current.cancelling()):
                raise
            logger.info("Query interrupted for session %s", self.session_id)
        finally:
            self._query_task = None
            self._abort_event = None
            self._pending_echo = None
            self._set_busy(False)
            if self.error:
                self._emit_state(SessionStateUpdate(error=self.error))

    async def send(
        self, prompt: str, attachments: Iterable[AttachmentPayload] | None = None
    ) -> None:
        """
        Send a user prompt and stream the response.

        Waits for any in-flight query first. Backend failures are stored in
        ``error`` rather than raised.

        Args:
            prompt: The user's message
            attachments: Optional attachments sent with the prompt
        """
        self.last_modified_time = time.time()
        epoch = self._interrupt_epoch
        async with self._query_lock:
            user_turn = self._build_user_turn(prompt, attachments)
            self._echo(user_turn)
            if not self.summary:
                self.summary = summarize_prompt(prompt)
            self._clear_error()

            request = QueryRequest(options=self.query_options(), resume=self.session_id)
            await self._run_query(user_turn, request, epoch)
        self.last_modified_time = time.time()

    async def _resolve_branch_anchor(
        self, source_session_id: str, branch_point_uuid: str
    ) -> tuple[str | None, DegradedReason | None]:
        """Find the message preceding the branch point in the source transcript."""
        try:
            turns = await self._backend.load_persisted_turns(source_session_id)
        except Exception:
            logger.exception(
                "Degraded branch: failed to load source session %s, forking full history",
                source_session_id,
            )
            return None, "source_lookup_failed"

        point = next((t for t in turns if t.uuid == branch_point_uuid), None)
        if point is None:
            logger.warning(
                "Degraded branch: message %s not found in session %s, forking full history",
                branch_point_uuid,
                source_session_id,
            )
            return None, "branch_point_not_found"

        if point.parent_uuid:
            logger.debug("Branch point %s has parent %s", branch_point_uuid, point.parent_uuid)
            return point.parent_uuid, None

        logger.info("Branch point %s is the first message, starting from empty history", branch_point_uuid)
        return None, None

    async def branch(
        self,
        source_session_id: str,
        branch_point_uuid: str,
        prompt: str,
        attachments: Iterable[AttachmentPayload] | None = None,
    ) -> BranchResult:
        """
        Replace a message of another session with a new prompt.

        The backend forks the source session at the parent of the branch point
        so the new prompt takes the branch point's place. This session's own
        id and messages are reset first.

        Args:
            source_session_id: Session being branched
            branch_point_uuid: Message the new prompt replaces
            prompt: The replacement user message
            attachments: Optional attachments

        Returns:
            BranchResult for the caller to persist
        """
        self.last_modified_time = time.time()
        epoch = self._interrupt_epoch
        async with self._query_lock:
            anchor, degraded = await self._resolve_branch_anchor(
                source_session_id, branch_point_uuid
            )

            self._update_session_id(None)
            self._messages = []
            self._is_loaded = False
            self._broadcast(MessagesUpdated(sessionId=None, messages=[]))

            user_turn = self._build_user_turn(prompt, attachments)
            self._echo(user_turn)
            self.summary = summarize_prompt(prompt)
            self._clear_error()

            options = self.query_options()
            if degraded is not None:
                request = QueryRequest(options=options, resume=source_session_id, fork_session=True)
            elif anchor is not None:
                request = QueryRequest(
                    options=options,
                    resume=source_session_id,
                    fork_session=True,
                    resume_session_at=anchor,
                )
            else:
                request = QueryRequest(options=options)

            await self._run_query(user_turn, request, epoch)
        self.last_modified_time = time.time()
        logger.info("Branch of %s complete, new session %s", source_session_id, self.session_id)

        return BranchResult(
            newSessionId=self.session_id,
            parentSessionId=source_session_id,
            branchPointMessageUuid=branch_point_uuid,
            branchPointParentUuid=anchor,
            degradedReason=degraded,
        )

    def interrupt(self) -> None:
        """
        Cancel the in-flight query and clear the busy flag.

        A send or branch that is still waiting for the lock or resolving its
        branch point is cancelled before it reaches the backend. With nothing
        pending this is a no-op.
        """
        if self._abort_event is not None:
            self._abort_event.set()
        if self._query_task is not None and not self._query_task.done():
            self._interrupt_requested = True
            self._query_task.cancel()
        # Sends and branches started before now never reach the backend
        self._interrupt_epoch += 1
        self._set_busy(False)

    # =========================================================================
    # Loading
    # =========================================================================

    async def load_from_server(self, session_id: str | None = None) -> bool:
        """
        Replace the message list with a persisted transcript.

        Concurrent calls share one in-flight load. Failures are stored in
        ``error``.

        Returns:
            False if this load failed
        """
        target = session_id or self.session_id
        if not target:
            return True

        if self._loading_task is None:
            self._update_session_id(target)
            self._set_loading(True)
            self._clear_error()
            self._loading_task = asyncio.create_task(self._load(target))

        return await asyncio.shield(self._loading_task)

    async def _load(self, session_id: str) -> bool:
        try:
            turns = await self._backend.load_persisted_turns(session_id)
            logger.info("Loaded %d turns for session %s", len(turns), session_id)

            if not self.options.cwd:
                workspace = detect_workspace(turns)
                if workspace:
                    self.set_options({"cwd": workspace})

            self.summary = derive_summary(turns)
            self._messages = convert_turns(turns)
            self._broadcast(MessagesUpdated(sessionId=self.session_id, messages=self.messages))
            self._set_busy(False)

            if turns:
                self._is_loaded = True
                last = extract_timestamp(turns[-1].timestamp)
                if last is not None:
                    self.last_modified_time = last
            else:
                self.last_modified_time = time.time()
            return True
        except Exception as e:
            logger.exception("Failed to load session %s", session_id)
            self.error = str(e) or type(e).__name__
            return False
        finally:
            self._loading_task = None
            self._set_loading(False)
            if self.error:
                self._emit_state(SessionStateUpdate(error=self.error))

    async def resume_from(self, session_id: str) -> bool:
        """
        Load a session's transcript unless it is already loaded.

        Returns:
            False if the load ran and failed
        """
        if not session_id:
            return True
        if self.session_id == session_id and self._is_loaded:
            logger.debug("resume_from short-circuited for %s", session_id)
            return True
        return await self.load_from_server(session_id)


def _content_key(turn: UserTurn) -> list[dict[str, Any]]:
    return [block.model_dump(mode="json") for block in content_blocks(turn.message)]
