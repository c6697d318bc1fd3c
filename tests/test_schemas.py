from __future__ import annotations

import json

import pytest

from hdr.errors import ValidationError
from hdr.schemas import (
    ACTION_ADAPTER,
    BashAction,
    EditAction,
    UnknownAction,
    dump_action,
    parse_action,
    validate_action,
)


@pytest.mark.parametrize(
    "raw",
    [
        {"tool": "bash", "params": {"command": "ls -la"}},
        {"tool": "computer", "params": {"action": "left_click_drag", "coordinate": [10, 20]}},
        {"tool": "computer", "params": {"action": "type", "text": "hello"}},
        {"tool": "computer", "params": {"action": "screenshot"}},
        {"tool": "str_replace_editor", "params": {"command": "view", "path": "/tmp/a.txt", "view_range": [1, 5]}},
        {"tool": "str_replace_editor", "params": {"command": "str_replace", "path": "/tmp/a.txt", "old_str": "a"}},
        {"tool": "str_replace_editor", "params": {"command": "insert", "path": "/a", "insert_line": 0, "new_str": "x"}},
    ],
)
def test_fixed_actions_validate(raw: dict) -> None:
    result = validate_action(raw)

    assert result.ok
    assert not result.extension
    assert dump_action(result.action) == raw


def test_action_survives_json_round_trip() -> None:
    action = parse_action(
        {"tool": "str_replace_editor", "params": {"command": "create", "path": "/a", "file_text": ""}}
    )

    restored = ACTION_ADAPTER.validate_json(json.dumps(dump_action(action)))

    assert restored == action
    assert isinstance(restored, EditAction)


def test_unknown_tool_falls_through_to_extension() -> None:
    result = validate_action({"tool": "weather", "params": {"city": "Oslo"}})

    assert result.ok
    assert result.extension
    assert isinstance(result.action, UnknownAction)
    assert result.action.params == {"city": "Oslo"}


def test_fixed_tool_with_wrong_params_is_an_error_not_an_extension() -> None:
    result = validate_action({"tool": "bash", "params": {"cmd": "ls"}})

    assert not result.ok
    assert result.action is None
    assert result.error.tool == "bash"
    assert "command" in result.error.message


@pytest.mark.parametrize(
    "params",
    [
        {"action": "mouse_move", "coordinate": [100.5, 2]},
        {"action": "mouse_move", "coordinate": ["1", "2"]},
        {"action": "mouse_move", "coordinate": [1]},
        {"action": "key", "text": ""},
        {"action": "screenshot", "coordinate": [1, 2]},
        {"action": "scroll"},
    ],
)
def test_invalid_computer_params_are_rejected(params: dict) -> None:
    result = validate_action({"tool": "computer", "params": params})

    assert not result.ok
    assert result.error.tool == "computer"


def test_editor_commands_enforce_required_fields() -> None:
    assert not validate_action({"tool": "str_replace_editor", "params": {"command": "create", "path": "/a"}}).ok
    assert not validate_action({"tool": "str_replace_editor", "params": {"command": "insert", "path": "/a"}}).ok
    assert not validate_action({"tool": "str_replace_editor", "params": {"command": "view", "path": ""}}).ok


@pytest.mark.parametrize("raw", [{}, {"tool": ""}, {"params": {}}, "bash", None, [1, 2]])
def test_malformed_payloads_never_raise(raw: object) -> None:
    result = validate_action(raw)

    assert not result.ok
    assert result.error.tool is None


def test_parse_action_raises_for_extension_payloads() -> None:
    with pytest.raises(ValidationError) as exc_info:
        parse_action({"tool": "weather", "params": {}})
    assert exc_info.value.tool == "weather"


def test_parse_action_returns_model() -> None:
    action = parse_action({"tool": "bash", "params": {"command": "pwd"}})

    assert isinstance(action, BashAction)
    assert action.params.command == "pwd"
