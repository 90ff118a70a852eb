"""sqlagent.config

Centralized configuration for the agent.

Uses environment variables (optionally seeded from a .env file) to avoid
hardcoded secrets.
"""

from __future__ import annotations
from dataclasses import dataclass
import os

from dotenv import find_dotenv, load_dotenv

from sqlagent.agents.sql_agent import AgentConfig
from sqlagent.errors import ConfigError
from sqlagent.policy.sql_policy import SafetyContext, SafetyLevel


def load_env(dotenv_path: str | None = None, override: bool = False) -> str | None:
    """Load env vars from .env.

    Args:
        dotenv_path: Optional explicit path to .env. If not provided, search upward from CWD.
        override: If True, values in .env override existing env vars. Default False.

    Returns:
        The .env path used, or None if no .env was found.
    """
    path = dotenv_path or find_dotenv(usecwd=True)
    if not path or not os.path.exists(path):
        return None
    load_dotenv(dotenv_path=path, override=override)
    return path


def _env(name: str, default: str | None = None) -> str | None:
    val = os.getenv(name)
    return val if val is not None else default


def _env_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None:
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None:
        return default
    try:
        return float(v)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Agent loop
    max_iterations: int
    require_confirmation: bool
    safety_level: SafetyLevel
    read_only: bool
    allow_maintenance: bool
    auto_confirm: bool
    timeout_seconds: float
    verbose_reasoning: bool

    # Conversation context
    context_max_messages: int
    context_max_tokens: int

    # DB
    db_backend: str  # sqlserver|sqlite
    sqlite_path: str
    azure_sql_server: str | None
    azure_sql_database: str | None
    azure_sql_conn_str: str | None
    max_rows: int
    max_cols: int

    # Azure OpenAI
    azure_openai_endpoint: str
    azure_openai_chat_deployment: str
    azure_openai_api_version: str

    # Logging
    log_dir: str
    log_level: str

    @staticmethod
    def load() -> "Settings":
        max_iterations = _env_int("AGENT_MAX_ITERATIONS", 10)
        if max_iterations < 1:
            raise ConfigError(f"AGENT_MAX_ITERATIONS must be >= 1, got {max_iterations}")

        try:
            level = SafetyLevel.parse(_env("AGENT_SAFETY_LEVEL", "balanced") or "balanced")
        except ValueError as e:
            raise ConfigError(str(e)) from e

        db_backend = (_env("DB_BACKEND", "sqlite") or "sqlite").strip().lower()
        if db_backend not in ("sqlite", "sqlserver"):
            raise ConfigError(f"DB_BACKEND must be sqlite or sqlserver, got {db_backend!r}")

        return Settings(
            max_iterations=max_iterations,
            require_confirmation=_env_bool("AGENT_REQUIRE_CONFIRMATION", True),
            safety_level=level,
            read_only=_env_bool("AGENT_READ_ONLY", False),
            allow_maintenance=_env_bool("AGENT_ALLOW_MAINTENANCE", False),
            auto_confirm=_env_bool("AGENT_AUTO_CONFIRM", False),
            timeout_seconds=_env_float("AGENT_TIMEOUT_SECONDS", 30.0),
            verbose_reasoning=_env_bool("AGENT_VERBOSE_REASONING", False),
            context_max_messages=_env_int("CONTEXT_MAX_MESSAGES", 50),
            context_max_tokens=_env_int("CONTEXT_MAX_TOKENS", 8000),
            db_backend=db_backend,
            sqlite_path=_env("SQLITE_PATH", "data/app.db") or "data/app.db",
            azure_sql_server=_env("AZURE_SQL_SERVER"),
            azure_sql_database=_env("AZURE_SQL_DATABASE"),
            azure_sql_conn_str=_env("AZURE_SQL_CONN_STR"),
            max_rows=_env_int("QUERY_MAX_ROWS", 100),
            max_cols=_env_int("QUERY_MAX_COLS", 50),
            azure_openai_endpoint=_env("AZURE_OPENAI_ENDPOINT", "") or "",
            azure_openai_chat_deployment=_env("AZURE_OPENAI_CHAT_DEPLOYMENT", "") or "",
            azure_openai_api_version=_env("AZURE_OPENAI_API_VERSION", "2024-12-01-preview") or "2024-12-01-preview",
            log_dir=_env("LOG_DIR", "logs") or "logs",
            log_level=_env("LOG_LEVEL", "INFO") or "INFO",
        )

    def agent_config(self) -> AgentConfig:
        return AgentConfig(
            max_iterations=self.max_iterations,
            require_confirmation=self.require_confirmation,
            safety_level=self.safety_level,
            timeout_seconds=self.timeout_seconds,
            verbose_reasoning=self.verbose_reasoning,
        )

    def safety_context(self) -> SafetyContext:
        return SafetyContext(level=self.safety_level, read_only=self.read_only)
