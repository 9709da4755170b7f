from __future__ import annotations

import asyncio
import base64
import contextlib
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from toolchat import events
from toolchat.active_tools import ActiveSetPolicy, ClassifierPolicy, StaticModePolicy, tools_used_in_history
from toolchat.app_config import AppConfig
from toolchat.capability_registry import RegistryFactory
from toolchat.chunk_classifier import ChunkClassifier
from toolchat.correlation import CorrelationStore
from toolchat.directives import DirectivePreprocessor, PreprocessResult
from toolchat.errors import GenerationError, ToolchatError
from toolchat.memory import InteractionLog, SessionManager
from toolchat.modes import Mode, available_modes, profile_for
from toolchat.recorder import InteractionRecorder
from toolchat.schemas import ChatRequest, ChatResponse, parse_chat_request
from toolchat.system_prompt import with_working_directory
from toolchat.tool import Tool
from toolchat.turn_engine import StepSummary, TurnEngine, TurnResult


@dataclass
class PreparedTurn:
    request: ChatRequest
    model: str
    temperature: float
    max_tokens: int
    session_id: str
    is_new_session: bool
    history: list[dict] = field(default_factory=list)
    user_message: dict | None = None
    system_prompt: str = ""
    active_tools: list[str] = field(default_factory=list)
    tools: list[Tool] = field(default_factory=list)
    echo: str | None = None


@dataclass(frozen=True)
class _Delta:
    kind: str
    text: str


_DONE = object()


def user_message_for(result: PreprocessResult) -> dict:
    if not result.attachments:
        return {"role": "user", "content": result.processed_prompt}
    content: list[dict] = [{"type": "text", "text": result.processed_prompt}]
    for attachment in result.attachments:
        content.append({
            "type": "file",
            "mime_type": attachment.mime_type,
            "data": base64.b64encode(attachment.data).decode("ascii"),
        })
    return {"role": "user", "content": content}


class ChatService:
    """Admission, streaming and synchronous chat over one provider and one store."""

    def __init__(
        self,
        *,
        config: AppConfig,
        provider: Any,
        registry_factory: RegistryFactory,
        sessions: SessionManager,
        interactions: InteractionLog,
        recorder: InteractionRecorder,
        correlation: CorrelationStore,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._provider = provider
        self._registry_factory = registry_factory
        self._sessions = sessions
        self._interactions = interactions
        self._recorder = recorder
        self._correlation = correlation
        self._transport = transport
        self._classifier: ActiveSetPolicy | None = None
        if config.active_tool_policy == "classifier":
            self._classifier = ClassifierPolicy(provider, config.classifier_model)

    def available_modes(self) -> list[str]:
        return available_modes()

    def history(self, page: int = 1, page_size: int = 10) -> dict:
        return self._interactions.list_page(page, page_size)

    def interaction(self, interaction_id: str) -> dict | None:
        return self._interactions.get(interaction_id)

    def admit(self, payload: Any) -> str:
        """Validate an admission payload and park it until the stream for its token is opened."""
        request = parse_chat_request(payload)
        token = self._correlation.admit(request)
        logger.debug(f"Admitted request {token} (mode={request.mode or 'normal'}, session={request.session_id})")
        return token

    async def stream(self, token: str) -> AsyncIterator[events.ServerEvent]:
        """Events for one admitted request, always ending with exactly one ``close``.

        Closing the iterator early cancels the in-flight generation and nothing is recorded.
        """
        request = self._correlation.redeem(token)
        if request is None:
            logger.warning(f"Correlation miss for token {token}")
            yield events.error("Unknown or already consumed request token")
            yield events.close()
            return

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.stream_timeout_seconds
        queue: asyncio.Queue = asyncio.Queue()
        classifier = ChunkClassifier()
        task = asyncio.create_task(self._produce(request, queue))
        try:
            while True:
                try:
                    item = await asyncio.wait_for(queue.get(), timeout=max(deadline - loop.time(), 0))
                except asyncio.TimeoutError:
                    logger.warning(f"Stream {token} timed out after {self._config.stream_timeout_seconds:.0f}s")
                    task.cancel()
                    for piece in classifier.finish():
                        yield events.message(piece)
                    yield events.error("The response timed out.")
                    break

                if item is _DONE:
                    break
                if isinstance(item, _Delta):
                    for piece in classifier.feed(item.kind, item.text):
                        yield events.message(piece)
                    continue
                if item.event in (events.COMPLETE, events.ERROR):
                    for piece in classifier.finish():
                        yield events.message(piece)
                yield item
            yield events.close()
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def _produce(self, request: ChatRequest, queue: asyncio.Queue) -> None:
        async def on_delta(kind: str, text: str) -> None:
            await queue.put(_Delta(kind, text))

        async def on_step(step: StepSummary) -> None:
            if self._config.emit_step_summaries and step.tool_calls:
                await queue.put(_Delta("text", f"\n\n{step.describe()}\n\n"))

        try:
            turn = await self.prepare(request)
            if turn.echo is not None:
                await queue.put(events.update_prompt(turn.echo))
                await queue.put(events.complete([], request.session_id))
                return
            result = await self._run(turn, on_delta=on_delta, on_step=on_step)
            await queue.put(events.complete(result.sources, turn.session_id))
        except ToolchatError as ex:
            await queue.put(events.error(str(ex)))
        except Exception as ex:
            logger.exception(f"Unexpected failure while streaming: {ex}")
            await queue.put(events.error(f"Unexpected error: {ex}"))
        finally:
            await queue.put(_DONE)

    async def chat(self, payload: Any) -> ChatResponse:
        """Synchronous variant: one response with the final text, reasoning and tool summary."""
        request = parse_chat_request(payload)
        turn = await self.prepare(request)
        if turn.echo is not None:
            return ChatResponse(content=turn.echo)
        result = await self._run(turn)
        return ChatResponse(
            content=result.text,
            reasoning=result.reasoning or None,
            tool_summary=result.tool_summary() or None,
            sources=result.sources,
            session_id=turn.session_id,
        )

    async def prepare(self, request: ChatRequest) -> PreparedTurn:
        base_dir = self._config.require_base_dir()

        if request.session_id:
            session = self._sessions.require_session(request.session_id)
            session_id, history, is_new = session.id, session.messages, False
        else:
            session_id, history, is_new = self._sessions.new_session_id(), [], True

        turn = PreparedTurn(
            request=request,
            model=self._config.resolve_model(request.model),
            temperature=request.temperature if request.temperature is not None else self._config.temperature,
            max_tokens=request.max_tokens or self._config.max_tokens,
            session_id=session_id,
            is_new_session=is_new,
            history=history,
        )

        preprocessed = await DirectivePreprocessor(base_dir, transport=self._transport).process(request.message)
        if preprocessed.return_prompt:
            turn.echo = preprocessed.processed_prompt
            return turn

        working_directory = preprocessed.resolved_project_dir or base_dir
        registry = self._registry_factory.build(working_directory)
        mode = Mode.parse(request.mode)
        policy = self._classifier or StaticModePolicy(mode)
        try:
            turn.active_tools = await policy.choose_active_tools(registry, preprocessed.processed_prompt)
        except ToolchatError:
            raise
        except Exception as ex:
            raise GenerationError(f"Choosing active tools failed: {ex}") from ex

        enabled = list(turn.active_tools)
        enabled.extend(n for n in tools_used_in_history(history, registry) if n not in enabled)
        turn.tools = registry.subset(enabled)

        turn.system_prompt = profile_for(mode).system_prompt(request.system)
        if turn.tools and not request.system:
            turn.system_prompt = with_working_directory(turn.system_prompt, working_directory)

        turn.user_message = user_message_for(preprocessed)
        logger.info(
            f"Turn prepared: session={session_id}, mode={mode.value}, model={turn.model}, "
            f"active_tools={turn.active_tools}, enabled={[t.name for t in turn.tools]}"
        )
        return turn

    async def _run(self, turn: PreparedTurn, *, on_delta=None, on_step=None) -> TurnResult:
        async def on_finish(result: TurnResult) -> None:
            self._record(turn, result)

        engine = TurnEngine(
            provider=self._provider,
            model=turn.model,
            max_tokens=turn.max_tokens,
            temperature=turn.temperature,
            system_prompt=turn.system_prompt,
            tools=turn.tools,
            max_steps=self._config.max_steps,
            max_tool_result_chars=self._config.max_tool_result_chars,
            repair_model=self._config.repair_model,
            on_delta=on_delta,
            on_step=on_step,
            on_finish=on_finish,
        )
        return await engine.run(turn.history + [turn.user_message])

    def _record(self, turn: PreparedTurn, result: TurnResult) -> None:
        self._recorder.record(
            session_id=turn.session_id,
            is_new_session=turn.is_new_session,
            history=turn.history,
            new_messages=[turn.user_message, *result.response_messages],
            model=result.model,
            params={
                "temperature": turn.temperature,
                "maxTokens": turn.max_tokens,
                "activeTools": turn.active_tools,
            },
            usage=result.usage.to_dict(),
            duration_ms=result.duration_ms,
        )
