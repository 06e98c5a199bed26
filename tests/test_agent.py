import json
import threading
import pytest
import httpx
import openai
from unittest.mock import MagicMock
from assistant.agent.registry import ToolRegistry
from assistant.agent.tools import (
    register_customer_tools,
    _list_customers,
    _list_customer_types,
    _get_customer,
)
from assistant.agent.selection import (
    ModelToolSelector,
    RuleToolSelector,
    NullToolSelector,
    customer_tool_rules,
)
from assistant.bootstrap import seed_customers
from assistant.db import create_db_engine, init_db
from assistant.errors import ExecutionFailure, GenerationError, InvalidArgument, ToolTimeout, UnknownTool
from assistant.llm.base import GenerationRequest
from assistant.llm.openai_client import OpenAIBackend
from assistant.models.conversation import ConversationTurn
from assistant.models.tool import ToolCall, ToolDescriptor, ToolParameter
from assistant.store.records import RecordStore

TYPES = ["Supermarket", "Restaurant", "Hotel", "Gas Station"]


@pytest.fixture
def store():
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    s = RecordStore(engine)
    seed_customers(s)
    return s


@pytest.fixture
def registry(store):
    return register_customer_tools(ToolRegistry(), store)


ECHO = ToolDescriptor(
    name="echo",
    description="Echo a message.",
    parameters=(
        ToolParameter("message", "string", "Text to echo."),
        ToolParameter("times", "integer", "Repeat count.", required=False),
    ),
)


def _echo(message, times=1):
    return {"echo": message * times}


# ---------------------------------------------------------------------------
# Registry tests
# ---------------------------------------------------------------------------
def test_registry_has_customer_tools(registry):
    assert [d.name for d in registry.descriptors()] == ["list_customers", "list_customer_types", "get_customer"]
    assert "list_customer_types" in registry
    assert len(registry) == 3


def test_openai_schema_format(registry):
    schema = registry.openai_tools_schema()
    assert len(schema) == 3
    for tool in schema:
        assert tool["type"] == "function"
        assert "name" in tool["function"]
        assert "description" in tool["function"]
        assert tool["function"]["parameters"]["type"] == "object"

    list_customers = schema[0]["function"]
    assert list_customers["parameters"]["properties"]["type"]["type"] == "string"
    assert list_customers["parameters"]["required"] == []


def test_register_duplicate_name():
    reg = ToolRegistry()
    reg.register(ECHO, _echo)
    with pytest.raises(ValueError):
        reg.register(ECHO, _echo)


def test_invoke_ok():
    reg = ToolRegistry()
    reg.register(ECHO, _echo)
    assert reg.invoke("echo", {"message": "hi", "times": 2}) == {"echo": "hihi"}
    # Optional parameters may be omitted or null
    assert reg.invoke("echo", {"message": "hi", "times": None}) == {"echo": "hi"}


def test_invoke_unknown_tool():
    reg = ToolRegistry()
    with pytest.raises(UnknownTool) as exc:
        reg.invoke("nonexistent_tool", {})
    assert exc.value.tool_name == "nonexistent_tool"


@pytest.mark.parametrize("args", [
    {},  # missing required
    {"message": 5},  # wrong type
    {"message": "hi", "times": True},  # bool is not an integer
    {"message": "hi", "volume": 11},  # unexpected argument
])
def test_invoke_invalid_arguments(args):
    reg = ToolRegistry()
    handler = MagicMock()
    reg.register(ECHO, handler)
    with pytest.raises(InvalidArgument):
        reg.invoke("echo", args)
    handler.assert_not_called()


def test_invoke_handler_failure():
    reg = ToolRegistry()

    def boom(message):
        raise RuntimeError("database offline")

    reg.register(ToolDescriptor("boom", "Fails.", (ToolParameter("message", "string"),)), boom)
    with pytest.raises(ExecutionFailure, match="database offline"):
        reg.invoke("boom", {"message": "x"})
    with pytest.raises(ExecutionFailure, match="database offline"):
        reg.invoke("boom", {"message": "x"}, timeout=1.0)


def test_invoke_timeout():
    reg = ToolRegistry()
    release = threading.Event()

    def slow():
        release.wait(5)
        return {"done": True}

    reg.register(ToolDescriptor("slow", "Blocks."), slow)
    try:
        with pytest.raises(ToolTimeout) as exc:
            reg.invoke("slow", {}, timeout=0.05)
        assert isinstance(exc.value, ExecutionFailure)
    finally:
        release.set()


def test_hung_tools_do_not_block_other_calls():
    reg = ToolRegistry()
    release = threading.Event()
    reg.register(ToolDescriptor("hang", "Blocks."), lambda: release.wait(10))
    reg.register(ECHO, _echo)
    try:
        for _ in range(12):
            with pytest.raises(ToolTimeout):
                reg.invoke("hang", {}, timeout=0.05)
        # Abandoned handlers are still running, yet a fast tool gets its own thread
        assert reg.invoke("echo", {"message": "ok"}, timeout=1.0) == {"echo": "ok"}
    finally:
        release.set()


def test_invoke_within_timeout():
    reg = ToolRegistry()
    reg.register(ECHO, _echo)
    assert reg.invoke("echo", {"message": "ok"}, timeout=2.0) == {"echo": "ok"}


# ---------------------------------------------------------------------------
# Customer tools
# ---------------------------------------------------------------------------
def test_list_customers_all(store):
    result = _list_customers(store)
    assert result["count"] == 10
    assert _list_customers(store, type="")["count"] == 10


def test_list_customers_filtered(store):
    result = _list_customers(store, type="Hotel")
    assert result["count"] == 2
    assert {c["name"] for c in result["customers"]} == {"Grandview Hotel", "Riverside Inn"}


def test_list_customer_types(store):
    result = _list_customer_types(store)
    assert result == {"count": 4, "types": TYPES}


def test_get_customer(store):
    first = store.get_all()[0]
    assert _get_customer(store, customer_id=first.id)["name"] == first.name
    assert "error" in _get_customer(store, customer_id=9999)


def test_tools_through_registry(registry):
    assert registry.invoke("list_customers", {"type": "Restaurant"})["count"] == 3
    assert registry.invoke("list_customer_types", {})["types"] == TYPES


# ---------------------------------------------------------------------------
# Selectors
# ---------------------------------------------------------------------------
@pytest.fixture
def rules_selector():
    return RuleToolSelector(customer_tool_rules(TYPES))


def test_rules_select_types(rules_selector, registry):
    calls = rules_selector.select("List customer types", (), registry.descriptors())
    assert [(c.name, c.arguments) for c in calls] == [("list_customer_types", {})]


def test_rules_select_filtered_list(rules_selector, registry):
    calls = rules_selector.select("Which gas stations are customers?", (), registry.descriptors())
    assert [(c.name, c.arguments) for c in calls] == [("list_customers", {"type": "Gas Station"})]

    calls = rules_selector.select("show me all hotels", (), registry.descriptors())
    assert [(c.name, c.arguments) for c in calls] == [("list_customers", {"type": "Hotel"})]


def test_rules_select_all_customers(rules_selector, registry):
    calls = rules_selector.select("List all customers", (), registry.descriptors())
    assert [(c.name, c.arguments) for c in calls] == [("list_customers", {})]


def test_rules_select_get_customer(rules_selector, registry):
    calls = rules_selector.select("Tell me about customer #3", (), registry.descriptors())
    assert [(c.name, c.arguments) for c in calls] == [("get_customer", {"customer_id": 3})]


def test_rules_select_nothing(rules_selector, registry):
    assert rules_selector.select("What's the weather tomorrow?", (), registry.descriptors()) == []


def test_rules_skip_unavailable_tools(rules_selector):
    assert rules_selector.select("List customer types", (), []) == []


def test_null_selector(registry):
    assert NullToolSelector().select("List customer types", (), registry.descriptors()) == []


def test_model_selector_passes_request(registry):
    backend = MagicMock()
    backend.select_tools.return_value = [ToolCall(name="list_customer_types")]
    history = (ConversationTurn.user("hi"), ConversationTurn.assistant("hello"))

    calls = ModelToolSelector(backend).select("List customer types", history, registry.descriptors(), user_id="u1")

    assert [c.name for c in calls] == ["list_customer_types"]
    request = backend.select_tools.call_args.args[0]
    assert request.new_message == "List customer types"
    assert request.history == history
    assert request.user_id == "u1"
    assert len(request.available_tools) == 3


def test_model_selector_swallows_backend_failure(registry):
    backend = MagicMock()
    backend.select_tools.side_effect = GenerationError("down", retryable=True)
    assert ModelToolSelector(backend).select("List customer types", (), registry.descriptors()) == []


# ---------------------------------------------------------------------------
# OpenAI backend
# ---------------------------------------------------------------------------
def _mock_response(content=None, tool_calls=None, finish_reason="stop"):
    mock_message = MagicMock()
    mock_message.content = content
    mock_message.tool_calls = tool_calls

    mock_choice = MagicMock()
    mock_choice.message = mock_message
    mock_choice.finish_reason = finish_reason

    mock_usage = MagicMock()
    mock_usage.prompt_tokens = 10
    mock_usage.completion_tokens = 5
    mock_usage.total_tokens = 15

    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    mock_response.usage = mock_usage
    return mock_response


def _request(registry, history=()):
    return GenerationRequest(
        system_prompt="You are a Sales and Marketing Agent.",
        history=history,
        new_message="List customer types",
        available_tools=tuple(registry.descriptors()),
        user_id="alice",
    )


def test_backend_generate(registry):
    client = MagicMock()
    client.chat.completions.create.return_value = _mock_response("Four types.")
    backend = OpenAIBackend(client=client, model="gpt-4o-mini")

    history = (
        ConversationTurn.user("hello"),
        ConversationTurn.assistant("hi"),
        ConversationTurn.tool("list_customer_types", json.dumps({"types": ["Hotel"]})),
    )
    assert backend.generate(_request(registry, history)) == "Four types."

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["tool_choice"] == "none"
    roles = [m["role"] for m in kwargs["messages"]]
    assert roles == ["system", "user", "assistant", "system", "user"]
    assert "list_customer_types" in kwargs["messages"][3]["content"]
    assert kwargs["messages"][-1]["content"] == "List customer types"


def test_backend_select_tools(registry):
    mock_tc = MagicMock()
    mock_tc.id = "call_123"
    mock_tc.function.name = "list_customers"
    mock_tc.function.arguments = '{"type": "Hotel"}'

    bad_tc = MagicMock()
    bad_tc.id = "call_bad"
    bad_tc.function.name = "list_customer_types"
    bad_tc.function.arguments = "{not json"

    client = MagicMock()
    client.chat.completions.create.return_value = _mock_response(tool_calls=[mock_tc, bad_tc], finish_reason="tool_calls")
    backend = OpenAIBackend(client=client, model="gpt-4o-mini")

    calls = backend.select_tools(_request(registry))
    assert [(c.name, c.arguments, c.id) for c in calls] == [
        ("list_customers", {"type": "Hotel"}, "call_123"),
        ("list_customer_types", {}, "call_bad"),
    ]
    assert client.chat.completions.create.call_args.kwargs["tool_choice"] == "auto"


def test_backend_wraps_connection_error(registry):
    client = MagicMock()
    client.chat.completions.create.side_effect = openai.APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    )
    backend = OpenAIBackend(client=client, model="gpt-4o-mini")
    with pytest.raises(GenerationError) as exc:
        backend.generate(_request(registry))
    assert exc.value.retryable is True


def test_backend_wraps_generic_error(registry):
    client = MagicMock()
    client.chat.completions.create.side_effect = openai.OpenAIError("bad request")
    backend = OpenAIBackend(client=client, model="gpt-4o-mini")
    with pytest.raises(GenerationError) as exc:
        backend.generate(_request(registry))
    assert exc.value.retryable is False


def test_backend_empty_reply_is_error(registry):
    client = MagicMock()
    client.chat.completions.create.return_value = _mock_response(content="")
    backend = OpenAIBackend(client=client, model="gpt-4o-mini")
    with pytest.raises(GenerationError):
        backend.generate(_request(registry))
