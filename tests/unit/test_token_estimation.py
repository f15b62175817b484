"""Unit tests for the TokenEstimator."""

import json

from delver_server.context import TokenEstimator
from delver_server.sessions import Message, ToolCall, ToolFunction


def _message(content: str, message_id: str = "m1", timestamp: str = "t1", **kwargs):
    return Message(
        role="assistant",
        content=content,
        message_id=message_id,
        timestamp=timestamp,
        **kwargs,
    )


def test_estimate_rounds_up():
    estimator = TokenEstimator()

    assert estimator.estimate_message(_message("")) == 0
    assert estimator.estimate_message(_message("abcd", "a")) == 1
    assert estimator.estimate_message(_message("abcde", "b")) == 2


def test_estimate_includes_thinking_and_tool_calls():
    estimator = TokenEstimator()
    tool_calls = [
        ToolCall(function=ToolFunction(name="vault_read", arguments={"path": "a.md"}))
    ]
    message = _message("abc", thinking="defgh", tool_calls=tool_calls)

    # Unset permission_status, result and error are left out
    serialized = '[{"function":{"name":"vault_read","arguments":{"path":"a.md"}}}]'
    expected = -(-(3 + 5 + len(serialized)) // 4)

    assert estimator.estimate_message(message) == expected


def test_estimate_counts_processed_tool_call_fields():
    estimator = TokenEstimator()
    tool_call = ToolCall(function=ToolFunction(name="vault_read"))
    tool_call.permission_status = "approved"
    tool_call.set_result("done")
    message = _message("", tool_calls=[tool_call])

    serialized = json.dumps(
        [
            {
                "function": {"name": "vault_read", "arguments": {}},
                "permission_status": "approved",
                "result": "done",
            }
        ],
        separators=(",", ":"),
    )

    assert estimator.estimate_message(message) == -(-len(serialized) // 4)


def test_estimate_is_cached_by_id_and_timestamp():
    estimator = TokenEstimator()
    message = _message("abcd")
    assert estimator.estimate_message(message) == 1

    # Same id and timestamp: stale cached value is returned
    message.content = "abcd" * 10
    assert estimator.estimate_message(message) == 1

    # A new timestamp busts the cache
    message.timestamp = "t2"
    assert estimator.estimate_message(message) == 10


def test_clear_cache():
    estimator = TokenEstimator()
    message = _message("abcd")
    estimator.estimate_message(message)

    message.content = "abcdabcd"
    estimator.clear_cache()

    assert estimator.estimate_message(message) == 2


def test_estimate_messages_sums():
    estimator = TokenEstimator()
    messages = [_message("abcd", "a"), _message("abcdabcd", "b"), _message("x", "c")]

    assert estimator.estimate_messages(messages) == 4
    assert estimator.estimate_messages([]) == 0
