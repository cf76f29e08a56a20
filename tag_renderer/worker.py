from __future__ import annotations

import json
import logging
import os
import sys
import threading
from dataclasses import asdict
from typing import Any

from tag_renderer.model_parser import parse_model
from tag_renderer.models import Err, RenderResult, WorkerOptions
from tag_renderer.template import render

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "TAG_RENDERER_LOG_LEVEL"


class JsonLineWriter:
    def __init__(self, stream=None):
        self.stream = stream or sys.stdout
        self._lock = threading.Lock()

    def write_line(self, payload: dict[str, Any]) -> None:
        text = json.dumps(payload, ensure_ascii=False)
        with self._lock:
            self.stream.write(text + "\n")
            self.stream.flush()


class Worker:
    def __init__(self, writer=None):
        self.writer = writer or JsonLineWriter()

    def handle_message(self, message: dict[str, Any]) -> None:
        message_type = str(message.get("type", "")).strip()
        payload = message.get("payload", {}) or {}
        logger.debug("Handling %s command", message_type or "<empty>")
        try:
            if message_type == "render":
                self._handle_render(payload)
            elif message_type == "render_batch":
                self._handle_render_batch(payload)
            elif message_type == "parse_model":
                self._handle_parse_model(payload)
            else:
                self.writer.write_line({"type": "error", "error": f"Unknown message type: {message_type}"})
        except ValueError as exc:
            self.writer.write_line({"type": "error", "error": str(exc)})
        except Exception as exc:
            logger.exception("Command %s failed", message_type)
            self.writer.write_line({"type": "error", "error": str(exc)})

    def _handle_render(self, payload: dict[str, Any]) -> None:
        options = _build_worker_options(payload)
        model = _resolve_model(payload, options)
        template = _require_template(payload.get("template"), field_name="template")
        self.writer.write_line(_result_event(render(model, template)))

    def _handle_render_batch(self, payload: dict[str, Any]) -> None:
        options = _build_worker_options(payload)
        model = _resolve_model(payload, options)
        templates = payload.get("templates")
        if not isinstance(templates, list):
            raise ValueError("templates must be a list")
        checked = [
            _require_template(raw_template, field_name=f"templates[{index}]")
            for index, raw_template in enumerate(templates)
        ]

        rendered = 0
        failed = 0
        for index, template in enumerate(checked):
            result = render(model, template)
            if result.is_ok():
                rendered += 1
            else:
                failed += 1
            self.writer.write_line({**_result_event(result), "index": index})

        self.writer.write_line(
            {
                "type": "batch_finished",
                "total": len(templates),
                "rendered": rendered,
                "failed": failed,
            }
        )

    def _handle_parse_model(self, payload: dict[str, Any]) -> None:
        options = _build_worker_options(payload)
        result = parse_model(payload.get("model", {}), raise_on_invalid=options.raise_on_invalid_model)
        self.writer.write_line(
            {
                "type": "model_parsed",
                "stats": asdict(result.stats),
                "names_preview": list(result.model)[: options.names_preview_limit],
            }
        )


def _result_event(result: RenderResult) -> dict[str, Any]:
    if isinstance(result, Err):
        return {"type": "render_failed", "error": result.error.to_dict()}
    return {"type": "rendered", "text": result.value}


def _resolve_model(payload: dict[str, Any], options: WorkerOptions) -> dict[str, str]:
    raw_model = payload.get("model")
    if raw_model is None:
        return {}
    return parse_model(raw_model, raise_on_invalid=options.raise_on_invalid_model).model


def _require_template(value: Any, *, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _build_worker_options(payload: dict[str, Any]) -> WorkerOptions:
    options_payload = payload.get("options", {}) or {}
    if not isinstance(options_payload, dict):
        raise ValueError("options must be an object")
    return WorkerOptions(
        raise_on_invalid_model=_parse_bool(
            options_payload.get("raise_on_invalid_model", True),
            field_name="raise_on_invalid_model",
        ),
        names_preview_limit=_parse_int(
            options_payload.get("names_preview_limit", 20),
            field_name="names_preview_limit",
            minimum=0,
        ),
    )


def _parse_int(value: Any, *, field_name: str, minimum: int | None = None) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError(f"{field_name} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be an integer") from exc

    if minimum is not None and parsed < minimum:
        raise ValueError(f"{field_name} must be >= {minimum}")
    return parsed


def _parse_bool(value: Any, *, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off", ""}:
            return False
    raise ValueError(f"{field_name} must be a boolean")


def configure_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    # stdout carries protocol lines only
    logging.basicConfig(stream=sys.stderr, level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def main() -> None:
    configure_logging()
    worker = Worker()
    for line in sys.stdin:
        raw = line.strip()
        if not raw:
            continue
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as exc:
            worker.writer.write_line({"type": "error", "error": f"Invalid JSON: {exc}"})
            continue
        if not isinstance(message, dict):
            worker.writer.write_line({"type": "error", "error": "Invalid message: expected object"})
            continue
        worker.handle_message(message)


if __name__ == "__main__":
    main()
