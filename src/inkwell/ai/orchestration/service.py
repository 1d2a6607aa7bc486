"""Agent service: run one editing turn end to end and yield caller events."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator

from ...services.compiler import CompileClient
from ...services.settings import Settings
from ...utils.logging import turn_log_context
from ..ai_types import EditTurn
from ..analysis.intent import IntentResult, classify_intent
from ..client import AIClient, ClientSettings
from ..memory.sessions import SessionMemoryManager, SessionState, SessionStore
from ..prompts import build_system_prompt
from ..services.context_window import build_numbered_content, select_project_files
from ..tools.base import TelemetryEmitter, TurnWorkspace
from ..tools.compile_project import CompileTool
from ..tools.edit import EditTool
from ..tools.get_context import GetContextTool
from ..tools.registry import ToolRegistry
from .agent_loop import AgentLoop, LoopConfig, ModelClient
from .events import CallerEvent, DoneEvent, ErrorEvent, EventSink, StatusEvent
from .stream_adapter import StreamAdapter
from .tool_executor import ToolExecutor

__all__ = ["AgentService", "PreparedTurn"]

LOGGER = logging.getLogger(__name__)

_END = object()


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(slots=True)
class PreparedTurn:
    """Everything derived from a request before the model is called."""

    turn: EditTurn
    intent: IntentResult
    numbered_content: str
    system_prompt: str
    session: SessionState | None
    request_id: str

    def messages(self) -> list[dict[str, Any]]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": self.turn.instruction},
        ]


class AgentService:
    """Wire the windower, classifier, tools, tool loop and session memory.

    One service instance is shared across turns; every turn gets its own
    workspace, tool executor and producer task.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: ModelClient,
        sessions: SessionMemoryManager | None = None,
        compiler: CompileClient | None = None,
        telemetry: TelemetryEmitter | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._sessions = sessions
        self._compiler = compiler
        self._telemetry = telemetry
        self._adapter = StreamAdapter()

    @classmethod
    def from_settings(cls, settings: Settings) -> "AgentService":
        client = AIClient(
            ClientSettings(
                base_url=settings.base_url,
                api_key=settings.api_key,
                model=settings.model,
                organization=settings.organization,
                request_timeout=settings.request_timeout,
                max_retries=settings.max_retries,
                retry_min_seconds=settings.retry_min_seconds,
                retry_max_seconds=settings.retry_max_seconds,
                default_headers=settings.default_headers or None,
                metadata={str(key): str(value) for key, value in settings.metadata.items()} or None,
                debug_logging=settings.debug_logging,
            )
        )
        store = SessionStore(
            max_entries=settings.session_max_entries,
            ttl_seconds=settings.session_ttl_seconds,
        )
        sessions = SessionMemoryManager(store, summarizer=client, summary_model=settings.summary_model)
        compiler = None
        if settings.compile_service_url:
            compiler = CompileClient(settings.compile_service_url, timeout=settings.compile_timeout)
        return cls(settings, client=client, sessions=sessions, compiler=compiler)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def sessions(self) -> SessionMemoryManager | None:
        return self._sessions

    def build_registry(self) -> ToolRegistry:
        registry = ToolRegistry()
        registry.register(GetContextTool(window=self._settings.context_window))
        registry.register(EditTool())
        registry.register(CompileTool(compiler=self._compiler))
        return registry

    def prepare(self, turn: EditTurn, *, request_id: str | None = None) -> PreparedTurn:
        window = self._settings.context_window
        numbered = build_numbered_content(turn.file_content, turn.selected_text, settings=window)
        intent = classify_intent(turn.instruction)

        session: SessionState | None = None
        if turn.session_id and self._sessions is not None:
            session = self._sessions.get_session(turn.session_id)

        selection = None
        if turn.project_files:
            selection = select_project_files(
                turn.other_files(),
                turn.current_file_path,
                active_content=turn.file_content,
                settings=window,
            )

        system_prompt = build_system_prompt(
            numbered,
            selected_text=turn.selected_text,
            selection_range=turn.selection_range,
            project_files=turn.project_files,
            current_file_path=turn.current_file_path,
            selection=selection,
            session_summary=session.summary if session is not None else None,
            last_interaction=session.last_interaction if session is not None else None,
            cumulative_edits=self._settings.cumulative_edits,
            window=window,
        )
        return PreparedTurn(
            turn=turn,
            intent=intent,
            numbered_content=numbered,
            system_prompt=system_prompt,
            session=session,
            request_id=request_id or new_request_id(),
        )

    async def stream_turn(self, turn: EditTurn) -> AsyncIterator[CallerEvent]:
        """Yield caller events for ``turn``, ending with exactly one ``done``.

        Events are produced by a background task. Closing this iterator early
        cancels that task; an already scheduled summary refresh keeps running.
        """

        queue: asyncio.Queue[Any] = asyncio.Queue()
        closed = False

        async def sink(event: CallerEvent) -> None:
            if not closed:
                await queue.put(event)

        async def produce() -> None:
            try:
                await self._run_turn(turn, sink)
            finally:
                queue.put_nowait(_END)

        producer = asyncio.get_running_loop().create_task(produce(), name="inkwell-turn")
        try:
            while True:
                item = await queue.get()
                if item is _END:
                    break
                yield item
        finally:
            closed = True
            if not producer.done():
                producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)

    async def _run_turn(self, turn: EditTurn, sink: EventSink, *, request_id: str | None = None) -> None:
        request_id = request_id or new_request_id()
        with turn_log_context(request_id=request_id, session_id=turn.session_id):
            await self._run_prepared_turn(turn, sink, request_id)

    async def _run_prepared_turn(self, turn: EditTurn, sink: EventSink, request_id: str) -> None:
        workspace: TurnWorkspace | None = None
        prepared: PreparedTurn | None = None
        text = ""
        completed = False
        await sink(StatusEvent(state="started"))
        try:
            prepared = self.prepare(turn, request_id=request_id)
            LOGGER.debug("Turn intent: %s", prepared.intent.as_dict())
            workspace = TurnWorkspace(
                turn=turn,
                intent=prepared.intent,
                numbered_content=prepared.numbered_content,
                sink=sink,
                cumulative_edits=self._settings.cumulative_edits,
                telemetry=self._telemetry,
                request_id=request_id,
            )
            registry = self.build_registry()
            loop = AgentLoop(
                self._client,
                ToolExecutor(registry, workspace),
                tools=registry.openai_tools(),
                config=LoopConfig(
                    max_steps=self._settings.max_steps,
                    max_completion_tokens=self._settings.max_completion_tokens,
                    temperature=self._settings.temperature,
                    tool_timeout=self._settings.tool_timeout,
                ),
            )
            text = await self._adapter.process(loop.full_stream(prepared.messages()), sink)
            LOGGER.info("Turn finished with %s edit(s) and %s chars of text", len(workspace.edits), len(text))
            self._store_interaction(turn, text)
            completed = True
        except Exception as exc:
            LOGGER.exception("Turn failed")
            await sink(ErrorEvent(message=str(exc) or "internal error"))

        edits = tuple(workspace.edits) if workspace is not None else ()
        await sink(DoneEvent(text=text, edits=edits))
        if completed and prepared is not None:
            self._schedule_refresh(turn, prepared.session, text)

    def _store_interaction(self, turn: EditTurn, text: str) -> None:
        if not turn.session_id or self._sessions is None:
            return
        self._sessions.store_last_interaction(turn.session_id, turn.instruction, text)

    def _schedule_refresh(self, turn: EditTurn, session: SessionState | None, text: str) -> None:
        if not turn.session_id or self._sessions is None:
            return
        self._sessions.schedule_summary_refresh(
            turn.session_id,
            session.summary if session is not None else "",
            turn.instruction,
            text,
        )

    async def aclose(self) -> None:
        if self._sessions is not None:
            await self._sessions.drain()
        if self._compiler is not None:
            await self._compiler.aclose()
        close = getattr(self._client, "aclose", None)
        if close is not None:
            await close()
