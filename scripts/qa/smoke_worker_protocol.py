#!/usr/bin/env python3
"""Worker protocol CLI smoke test (communicate version).

Usage:
  python scripts/qa/smoke_worker_protocol.py

How it works:
  All commands are written to stdin at once. stdin is closed, and the script
  waits for the process to exit before reading all of stdout. This avoids
  races between asynchronous pipe reads and writes.
"""

from __future__ import annotations

import json
import subprocess
import sys
from contextlib import suppress
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]

SAMPLE_MODEL = {"recipientName": "Prof. Zhang", "course": "Compilers"}

# ---------------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------------
_PASS = "\033[32m✓\033[0m"
_FAIL = "\033[31m✗\033[0m"
_failures: list[str] = []


def check(name: str, cond: bool, detail: str = "") -> None:
    if cond:
        print(f"  {_PASS} {name}")
    else:
        msg = f"{name}" + (f": {detail}" if detail else "")
        print(f"  {_FAIL} {msg}")
        _failures.append(msg)


def find(events: list[dict], type_: str) -> dict | None:
    return next((e for e in events if e.get("type") == type_), None)


# ---------------------------------------------------------------------------
# Main flow
# ---------------------------------------------------------------------------


def run() -> None:
    # Command order:
    # 1. parse_model
    # 2. render ok
    # 3. render with unknown tag -> render_failed
    # 4. bogus_cmd -> error
    # 5. render_batch
    commands: list[dict] = [
        {"type": "parse_model", "payload": {"model": SAMPLE_MODEL}},
        {
            "type": "render",
            "payload": {"template": "Dear {{ recipientName }}, about {{{course}}}.", "model": SAMPLE_MODEL},
        },
        {"type": "render", "payload": {"template": "{{ nobody }}", "model": SAMPLE_MODEL}},
        {"type": "bogus_cmd"},
        {
            "type": "render_batch",
            "payload": {"templates": ["{{ course }}", "{{ course", "{{{"], "model": SAMPLE_MODEL},
        },
    ]
    stdin_data = "\n".join(json.dumps(c, ensure_ascii=False) for c in commands) + "\n"

    proc = subprocess.Popen(
        [sys.executable, "-u", "-m", "tag_renderer.worker"],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        cwd=str(PROJECT_ROOT),
    )

    try:
        stdout_data, stderr_data = proc.communicate(input=stdin_data, timeout=45)
    except subprocess.TimeoutExpired:
        proc.kill()
        stdout_data, stderr_data = proc.communicate()
        print(f"  {_FAIL} worker timed out (45s)")
        _failures.append("worker subprocess timed out")
        return

    events: list[dict] = []
    for line in stdout_data.splitlines():
        line = line.strip()
        if not line:
            continue
        with suppress(json.JSONDecodeError):
            events.append(json.loads(line))

    if stderr_data.strip():
        print(f"  [stderr] {stderr_data[:400]}")

    # -----------------------------------------------------------------------
    print("\n[1] parse_model")
    ev = find(events, "model_parsed")
    check("received model_parsed", ev is not None, str(events[:3]))
    if ev:
        stats = ev.get("stats", {})
        check("stats.valid_rows == 2", stats.get("valid_rows") == 2, str(stats))

    print("\n[2] render")
    ev = find(events, "rendered")
    check("received rendered", ev is not None, str(events[:3]))
    if ev:
        expected = "Dear Prof. Zhang, about {Compilers}."
        check("text is substituted", ev.get("text") == expected, repr(ev.get("text")))

    print("\n[3] render unknown tag -> render_failed")
    ev = find(events, "render_failed")
    check("received render_failed", ev is not None, str(events))
    if ev:
        check("kind == unknown_tag", ev.get("error", {}).get("kind") == "unknown_tag", str(ev))

    print("\n[4] bogus_cmd -> error")
    bogus_err = next(
        (e for e in events if e.get("type") == "error" and "bogus_cmd" in e.get("error", "")),
        None,
    )
    check("received error mentioning bogus_cmd", bogus_err is not None, str(events))

    print("\n[5] render_batch")
    finished = find(events, "batch_finished")
    check("received batch_finished", finished is not None, str(events[-4:]))
    if finished:
        check("rendered == 2", finished.get("rendered") == 2, str(finished))
        check("failed == 1", finished.get("failed") == 1, str(finished))

    print()
    if _failures:
        print(f"\033[31mFAILED ({len(_failures)}): {_failures}\033[0m")
        sys.exit(1)
    else:
        print("\033[32mAll worker protocol smoke checks passed!\033[0m")


if __name__ == "__main__":
    run()
