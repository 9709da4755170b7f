from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from toolchat.errors import ConfigurationError

DEFAULT_MODELS = {
    "anthropic": "claude-sonnet-4-5-20250929",
    "openai": "gpt-4.1",
}


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str
    brave_api_key: str | None
    base_dir: str | None


@dataclass
class AppConfig:
    provider_name: str
    model: str
    supported_models: list[str]
    max_tokens: int
    temperature: float
    max_steps: int
    max_tool_result_chars: int
    thinking_budget_tokens: int
    base_dir: str | None
    active_tool_policy: str
    classifier_model: str
    repair_model: str
    correlation_ttl_seconds: float
    stream_timeout_seconds: float
    memory_db_path: str
    app_tag: str
    emit_step_summaries: bool
    provider_base_url: str | None = None
    mcp_server_configs: dict = field(default_factory=dict)
    log_level: str = "INFO"
    log_consumers: list | None = None

    def resolve_model(self, requested: str | None) -> str:
        """A requested model is used only when it is in SupportedModels."""
        if requested and requested in self.supported_models:
            return requested
        return self.model

    def require_base_dir(self) -> str:
        if not self.base_dir:
            raise ConfigurationError("Base directory is not set (BaseDir in config.json or BASE_DIR).")
        if not Path(self.base_dir).is_dir():
            raise ConfigurationError(f"Base directory does not exist: {self.base_dir}")
        return self.base_dir


def load_json_config(path: str | Path | None = None) -> dict:
    config_path = Path(path) if path else Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def parse_app_config(config: dict, env: RuntimeEnv | None = None) -> AppConfig:
    provider_name = str(config.get("Provider", "anthropic")).strip().lower()
    model = config.get("Model") or DEFAULT_MODELS.get(provider_name, DEFAULT_MODELS["anthropic"])
    supported = list(config.get("SupportedModels") or [])
    if model not in supported:
        supported.insert(0, model)
    base_dir = config.get("BaseDir") or (env.base_dir if env else None)

    return AppConfig(
        provider_name=provider_name,
        model=model,
        supported_models=supported,
        max_tokens=int(config.get("MaxTokens", 8192)),
        temperature=float(config.get("Temperature", 0.3)),
        max_steps=int(config.get("MaxSteps", 15)),
        max_tool_result_chars=int(config.get("MaxToolResultChars", 40_000)),
        thinking_budget_tokens=int(config.get("ThinkingBudgetTokens", 0)),
        base_dir=str(base_dir) if base_dir else None,
        active_tool_policy=str(config.get("ActiveToolPolicy", "mode")).strip().lower(),
        classifier_model=config.get("ClassifierModel") or model,
        repair_model=config.get("RepairModel") or model,
        correlation_ttl_seconds=float(config.get("CorrelationTtlSeconds", 600)),
        stream_timeout_seconds=float(config.get("StreamTimeoutSeconds", 30 * 60)),
        memory_db_path=str(config.get("MemoryDbPath", ".toolchat/memory.db")),
        app_tag=str(config.get("AppTag", "toolchat")),
        emit_step_summaries=_to_bool(config.get("EmitStepSummaries", True), default=True),
        provider_base_url=config.get("ProviderBaseUrl"),
        mcp_server_configs=config.get("McpServers", {}),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env(provider_name: str) -> RuntimeEnv:
    if provider_name == "openai":
        provider_api_key = os.environ.get("OPENAI_API_KEY", "")
        provider_env_var = "OPENAI_API_KEY"
    else:
        provider_api_key = os.environ.get("ANTHROPIC_API_KEY", "")
        provider_env_var = "ANTHROPIC_API_KEY"

    return RuntimeEnv(
        provider_api_key=provider_api_key,
        provider_env_var=provider_env_var,
        brave_api_key=os.environ.get("BRAVE_API_KEY") or None,
        base_dir=os.environ.get("BASE_DIR") or None,
    )
