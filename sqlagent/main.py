"""sqlagent.main

Wiring for tools + policies + safety gate + agent.
"""

from __future__ import annotations

from typing import Optional

from sqlagent.config import Settings, load_env
from sqlagent.logging_utils import build_audit_logger, build_logger
from sqlagent.tracing import TraceCollector

from sqlagent.agents.context import ConversationContext
from sqlagent.agents.safety_gate import SafetyGate
from sqlagent.agents.sql_agent import SqlAgent

from sqlagent.contracts.tool_base import ConfirmationHandler, DatabaseTool, DecisionSource

from sqlagent.policy.audit import AuditTrail
from sqlagent.policy.confirmation import ConfirmationWorkflow
from sqlagent.policy.limits_policy import LimitsPolicy
from sqlagent.policy.sql_policy import SafetyValidator

from sqlagent.tools.azure_openai_tool import AzureOpenAIDecisionSource
from sqlagent.tools.builtin_tools import create_builtin_tools
from sqlagent.tools.db_sqlite_tool import SqliteDatabaseTool
from sqlagent.tools.executor import ToolExecutor
from sqlagent.tools.registry import ToolRegistry


def build_database(settings: Settings, logger) -> DatabaseTool:
    if settings.db_backend == "sqlite":
        return SqliteDatabaseTool(settings.sqlite_path, logger=logger)

    # pyodbc needs the system ODBC driver manager; only load it for SQL Server
    from sqlagent.tools.db_sqlserver_tool import SqlServerDatabaseTool

    return SqlServerDatabaseTool(
        server=settings.azure_sql_server,
        database=settings.azure_sql_database,
        conn_str=settings.azure_sql_conn_str,
        logger=logger,
    )


def build_agent(
    settings: Optional[Settings] = None,
    confirmation_handler: Optional[ConfirmationHandler] = None,
    decision_source: Optional[DecisionSource] = None,
    db: Optional[DatabaseTool] = None,
) -> SqlAgent:
    """Assemble an agent from settings; collaborators may be injected (tests, scripts)."""
    if settings is None:
        load_env()  # load .env if present
        settings = Settings.load()

    logger = build_logger(settings.log_dir, level=settings.log_level)
    audit_logger = build_audit_logger(settings.log_dir)
    tracer = TraceCollector()
    config = settings.agent_config()

    db = db or build_database(settings, logger)
    limits = LimitsPolicy(max_rows=settings.max_rows, max_cols=settings.max_cols)
    registry = ToolRegistry(create_builtin_tools(db, limits, default_timeout=settings.timeout_seconds))
    executor = ToolExecutor(registry, logger=logger)

    validator = SafetyValidator(allow_maintenance=settings.allow_maintenance)
    gate = SafetyGate(
        validator=validator,
        safety_ctx=settings.safety_context(),
        workflow=ConfirmationWorkflow(auto_confirm=settings.auto_confirm),
        require_confirmation=config.require_confirmation,
        handler=confirmation_handler,
        audit=AuditTrail(audit_logger, validator.pii),
        tracer=tracer,
        logger=logger,
    )

    if decision_source is None:
        decision_source = AzureOpenAIDecisionSource(
            endpoint=settings.azure_openai_endpoint,
            chat_deployment=settings.azure_openai_chat_deployment,
            logger=logger,
            api_version=settings.azure_openai_api_version,
        )

    logger.info(
        f"Agent ready: backend={settings.db_backend} safety={settings.safety_level.label} "
        f"read_only={settings.read_only} tools={registry.keys()}"
    )
    return SqlAgent(
        decision_source=decision_source,
        executor=executor,
        gate=gate,
        context=ConversationContext(settings.context_max_messages, settings.context_max_tokens),
        config=config,
        tracer=tracer,
        logger=logger,
    )
