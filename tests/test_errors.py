from sqlagent.errors import (
    AgentError,
    AgentTimeout,
    DatabaseError,
    DatabaseFailure,
    InvalidToolArgumentsError,
    LLMError,
    MaxIterationsExceeded,
    SafetyViolation,
    ToolExecutionFailed,
    ToolNotFound,
    ToolNotFoundError,
    ToolTimeoutError,
    UnsafeSQLError,
)


def test_retryable_classes():
    assert LLMError("x").is_retryable()
    assert AgentTimeout("x").is_retryable()
    assert DatabaseFailure("x").is_retryable()
    assert not SafetyViolation("x").is_retryable()
    assert not MaxIterationsExceeded(3).is_retryable()
    assert not ToolExecutionFailed("t", "r").is_retryable()


def test_user_messages_are_human_readable():
    assert "3 reasoning steps" in MaxIterationsExceeded(3).user_message()
    assert "blocked" in SafetyViolation("DROP").user_message()
    assert "execute_query" in ToolExecutionFailed("execute_query", "bad").user_message()


def test_from_tool_error_mapping():
    assert isinstance(AgentError.from_tool_error("t", ToolNotFoundError("t")), ToolNotFound)
    assert isinstance(AgentError.from_tool_error("t", UnsafeSQLError("no")), SafetyViolation)
    assert isinstance(AgentError.from_tool_error("t", ToolTimeoutError(2)), AgentTimeout)
    assert isinstance(AgentError.from_tool_error("t", DatabaseError("locked")), DatabaseFailure)

    err = AgentError.from_tool_error("describe_table", InvalidToolArgumentsError("describe_table", "missing"))
    assert type(err) is ToolExecutionFailed
    assert err.tool_name == "describe_table"


def test_timeout_message_includes_seconds():
    assert str(ToolTimeoutError(1.5)) == "Tool execution timed out after 1.5s"
    assert str(ToolTimeoutError()) == "Tool execution timed out"
