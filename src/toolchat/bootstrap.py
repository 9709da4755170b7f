from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from toolchat.app_config import AppConfig, RuntimeEnv
from toolchat.capability_registry import RegistryFactory
from toolchat.chat_service import ChatService
from toolchat.correlation import InMemoryCorrelationStore
from toolchat.logging_config import setup_logging
from toolchat.mcp.mcp_manager import McpManager
from toolchat.memory import InteractionLog, MemoryStore, SessionManager
from toolchat.provider import create_provider
from toolchat.recorder import InteractionRecorder


@dataclass
class AppRuntime:
    service: ChatService
    mcp_manager: McpManager | None
    memory_store: MemoryStore
    mcp_tools: list
    log_descriptions: list[str]

    async def close(self) -> None:
        if self.mcp_manager is not None:
            await self.mcp_manager.close()
        self.memory_store.close()


async def bootstrap_runtime(app: AppConfig, env: RuntimeEnv) -> AppRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers)

    provider = create_provider(
        app.provider_name,
        env.provider_api_key,
        base_url=app.provider_base_url,
        thinking_budget_tokens=app.thinking_budget_tokens,
    )

    mcp_manager: McpManager | None = None
    mcp_tools: list = []
    if app.mcp_server_configs:
        mcp_manager = McpManager(app.mcp_server_configs)
        mcp_tools = await mcp_manager.connect_all()

    db_path = Path(app.memory_db_path)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    memory_store = MemoryStore(str(db_path))
    sessions = SessionManager(memory_store)
    interactions = InteractionLog(memory_store)

    service = ChatService(
        config=app,
        provider=provider,
        registry_factory=RegistryFactory(
            provider=provider,
            model=app.model,
            brave_api_key=env.brave_api_key,
            mcp_tools=mcp_tools,
        ),
        sessions=sessions,
        interactions=interactions,
        recorder=InteractionRecorder(memory_store, sessions, interactions, app.app_tag),
        correlation=InMemoryCorrelationStore(app.correlation_ttl_seconds),
    )

    return AppRuntime(
        service=service,
        mcp_manager=mcp_manager,
        memory_store=memory_store,
        mcp_tools=mcp_tools,
        log_descriptions=log_descriptions,
    )
