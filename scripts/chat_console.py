"""scripts.chat_console

Interactive console for the SQL agent.

Run:
  python scripts/chat_console.py

Commands: /reset clears the conversation, /stats prints agent statistics,
/quit exits. Mutating statements prompt for confirmation in the terminal.
"""

from __future__ import annotations

import asyncio

from sqlagent.contracts.models import ConfirmationReply
from sqlagent.contracts.tool_base import ConfirmationHandler
from sqlagent.errors import AppError
from sqlagent.main import build_agent
from sqlagent.policy.confirmation import ConfirmationLevel, ConfirmationRequest


class ConsoleConfirmationHandler(ConfirmationHandler):
    """Prompts on stdin; input() runs in a worker thread so the loop is not blocked."""

    async def resolve(self, request: ConfirmationRequest) -> ConfirmationReply:
        print(f"\n*** {request.operation} requires confirmation ({request.level.value}) ***")
        print(request.sql)

        if request.level == ConfirmationLevel.TYPED:
            answer = await asyncio.to_thread(input, f"Type {request.expected_value} to proceed (empty to cancel): ")
            return ConfirmationReply.typed(answer) if answer.strip() else ConfirmationReply.cancel()

        if request.level == ConfirmationLevel.ADMIN_APPROVAL:
            answer = await asyncio.to_thread(input, "Admin approval required. Approve? [y/N]: ")
            return ConfirmationReply.admin() if answer.strip().lower() in ("y", "yes") else ConfirmationReply.cancel()

        answer = await asyncio.to_thread(input, "Proceed? [y/N]: ")
        return ConfirmationReply.confirm() if answer.strip().lower() in ("y", "yes") else ConfirmationReply.cancel()


async def main() -> int:
    agent = build_agent(confirmation_handler=ConsoleConfirmationHandler())
    try:
        await agent.refresh_schema()
    except AppError as e:
        print(f"(schema not cached: {e})")

    while True:
        try:
            query = (await asyncio.to_thread(input, "\nsql-agent> ")).strip()
        except EOFError:
            return 0
        if not query:
            continue
        if query in ("/quit", "/exit"):
            return 0
        if query == "/reset":
            agent.reset()
            print("Conversation cleared.")
            continue
        if query == "/stats":
            s = agent.stats
            print(f"iterations={s.iterations} tool_calls={s.tool_calls} duration_ms={s.duration_ms}")
            continue

        resp = await agent.run(query)
        print(resp.user_message)
        if resp.executed_sql:
            print(f"\n[sql] {resp.executed_sql}")
        for err in resp.tool_errors:
            print(f"[tool error] {err.user_message()}")
        if resp.error is not None and resp.error.is_retryable():
            print("(this error may be temporary; you can retry the same question)")
        for t in resp.traces or []:
            print(f"[trace] {t['step']}: {t['payload']}")


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
