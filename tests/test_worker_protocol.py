import io
import json

import pytest

from tag_renderer import worker as worker_module
from tag_renderer.worker import Worker, _build_worker_options


class DummyWriter:
    def __init__(self) -> None:
        self.lines = []

    def write_line(self, payload):
        self.lines.append(payload)


def test_worker_render_command() -> None:
    writer = DummyWriter()
    worker = Worker(writer=writer)
    worker.handle_message(
        {
            "type": "render",
            "payload": {"template": "Hello {{ name }}", "model": {"name": "Ada"}},
        }
    )

    assert writer.lines == [{"type": "rendered", "text": "Hello Ada"}]


def test_worker_render_reports_unknown_tag() -> None:
    writer = DummyWriter()
    worker = Worker(writer=writer)
    worker.handle_message({"type": "render", "payload": {"template": "{{ missing }}"}})

    assert writer.lines[-1]["type"] == "render_failed"
    assert writer.lines[-1]["error"]["kind"] == "unknown_tag"
    assert writer.lines[-1]["error"]["name"] == "missing"


def test_worker_render_rejects_invalid_model_names() -> None:
    writer = DummyWriter()
    worker = Worker(writer=writer)
    worker.handle_message(
        {
            "type": "render",
            "payload": {"template": "{{ ok }}", "model": {"ok": "1", "not ok": "2"}},
        }
    )

    assert writer.lines[-1]["type"] == "error"
    assert "not ok" in writer.lines[-1]["error"]


def test_worker_render_skips_invalid_model_names_when_lenient() -> None:
    writer = DummyWriter()
    worker = Worker(writer=writer)
    worker.handle_message(
        {
            "type": "render",
            "payload": {
                "template": "{{ ok }}",
                "model": {"ok": "1", "not ok": "2"},
                "options": {"raise_on_invalid_model": "false"},
            },
        }
    )

    assert writer.lines[-1] == {"type": "rendered", "text": "1"}


def test_worker_render_requires_string_template() -> None:
    writer = DummyWriter()
    worker = Worker(writer=writer)
    worker.handle_message({"type": "render", "payload": {"template": 42}})

    assert writer.lines[-1]["type"] == "error"
    assert "template" in writer.lines[-1]["error"]


def test_worker_render_batch_command() -> None:
    writer = DummyWriter()
    worker = Worker(writer=writer)
    worker.handle_message(
        {
            "type": "render_batch",
            "payload": {
                "templates": ["a {{ TAG }}", "{{ TAG", "plain"],
                "model": {"TAG": "REPLACED"},
            },
        }
    )

    assert [line["type"] for line in writer.lines] == [
        "rendered",
        "render_failed",
        "rendered",
        "batch_finished",
    ]
    assert [line.get("index") for line in writer.lines[:3]] == [0, 1, 2]
    assert writer.lines[1]["error"]["kind"] == "unterminated_placeholder"
    assert writer.lines[-1] == {"type": "batch_finished", "total": 3, "rendered": 2, "failed": 1}


def test_worker_parse_model_command_returns_stats() -> None:
    writer = DummyWriter()
    worker = Worker(writer=writer)
    worker.handle_message(
        {
            "type": "parse_model",
            "payload": {
                "model": [
                    {"name": "a", "value": "1"},
                    {"name": "b", "value": "2"},
                    {"name": "a", "value": "3"},
                    {"name": "_c", "value": "4"},
                ],
                "options": {"raise_on_invalid_model": False, "names_preview_limit": 1},
            },
        }
    )

    assert writer.lines[-1]["type"] == "model_parsed"
    assert writer.lines[-1]["stats"]["valid_rows"] == 2
    assert writer.lines[-1]["stats"]["duplicate_rows"] == 1
    assert writer.lines[-1]["stats"]["invalid_name_rows"] == 1
    assert writer.lines[-1]["names_preview"] == ["a"]


def test_worker_unknown_command_returns_error() -> None:
    writer = DummyWriter()
    worker = Worker(writer=writer)
    worker.handle_message({"type": "unknown", "payload": {}})

    assert writer.lines[-1]["type"] == "error"
    assert "unknown" in writer.lines[-1]["error"]


def test_build_worker_options_validates_values() -> None:
    options = _build_worker_options({"options": {"raise_on_invalid_model": "yes", "names_preview_limit": "5"}})
    assert options.raise_on_invalid_model is True
    assert options.names_preview_limit == 5

    with pytest.raises(ValueError):
        _build_worker_options({"options": {"raise_on_invalid_model": "maybe"}})
    with pytest.raises(ValueError):
        _build_worker_options({"options": {"names_preview_limit": -1}})


def test_main_reads_commands_until_stdin_closes(monkeypatch, capsys) -> None:
    commands = [
        json.dumps({"type": "render", "payload": {"template": "{{x}}", "model": {"x": "y"}}}),
        "",
        "not json",
        json.dumps(["not", "an", "object"]),
    ]
    monkeypatch.setattr(worker_module.sys, "stdin", io.StringIO("\n".join(commands) + "\n"))

    worker_module.main()

    events = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert events[0] == {"type": "rendered", "text": "y"}
    assert events[1]["type"] == "error"
    assert events[1]["error"].startswith("Invalid JSON")
    assert events[2]["type"] == "error"
    assert len(events) == 3


def test_worker_render_batch_rejects_bad_template_before_emitting() -> None:
    writer = DummyWriter()
    worker = Worker(writer=writer)
    worker.handle_message(
        {
            "type": "render_batch",
            "payload": {"templates": ["ok", 5, "x"], "model": {}},
        }
    )

    assert writer.lines == [{"type": "error", "error": "templates[1] must be a string"}]


@pytest.mark.parametrize("value", [True, 2.9, "2.9", None])
def test_build_worker_options_rejects_non_integer_limits(value) -> None:
    with pytest.raises(ValueError):
        _build_worker_options({"options": {"names_preview_limit": value}})


def test_build_worker_options_accepts_integral_float_limit() -> None:
    assert _build_worker_options({"options": {"names_preview_limit": 3.0}}).names_preview_limit == 3
