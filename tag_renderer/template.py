from __future__ import annotations

import re
from collections.abc import Mapping

from tag_renderer.models import (
    Err,
    MalformedTag,
    Ok,
    RenderResult,
    TemplateRenderError,
    UnknownTag,
    UnterminatedPlaceholder,
)

OPEN_TOKEN = "{{"
CLOSE_TOKEN = "}}"

_TAG_NAME_PATTERN = re.compile(r"[A-Za-z][A-Za-z0-9]*")
_TAG_AHEAD_PATTERN = re.compile(r"\s*[A-Za-z][A-Za-z0-9]*\s*\}\}")


def is_tag_name(text: str) -> bool:
    return _TAG_NAME_PATTERN.fullmatch(text) is not None


def collapse_escapes(text: str) -> str:
    while OPEN_TOKEN in text:
        text = text.replace(OPEN_TOKEN, "{")
    return text


def render(model: Mapping[str, str], template: str) -> RenderResult:
    """Substitute every ``{{ name }}`` placeholder in ``template`` from ``model``.

    A run of three or more ``{`` is an escape and collapses to a single literal
    ``{``. When the last two braces of such a run open a well-formed tag, only
    the leading braces collapse and the tag is substituted, so ``{{{ a }}}``
    renders as ``{value}``. A placeholder closes at the first ``}}`` after its
    opening braces; placeholders never nest.

    Returns ``Ok`` with the rendered text, or ``Err`` with the first problem
    found scanning left to right. Never raises for any template.
    """
    parts: list[str] = []
    length = len(template)
    cursor = 0
    cached_close: int | None = None

    def find_close(start: int) -> int:
        nonlocal cached_close
        if cached_close is None or (cached_close != -1 and cached_close < start):
            cached_close = template.find(CLOSE_TOKEN, start)
        return cached_close

    while True:
        start = template.find(OPEN_TOKEN, cursor)
        if start == -1:
            parts.append(template[cursor:])
            return Ok("".join(parts))

        parts.append(template[cursor:start])
        run_end = start + len(OPEN_TOKEN)
        while run_end < length and template[run_end] == "{":
            run_end += 1

        opening = start
        if run_end - start > len(OPEN_TOKEN):
            # escaped run: the trailing pair only opens a tag if one follows
            parts.append("{")
            if _TAG_AHEAD_PATTERN.match(template, run_end) is None:
                cursor = run_end
                continue
            opening = run_end - len(OPEN_TOKEN)

        interior_start = opening + len(OPEN_TOKEN)
        close = find_close(interior_start)
        if close == -1:
            return Err(UnterminatedPlaceholder(position=opening))

        raw_interior = template[interior_start:close]
        name = raw_interior.strip()
        if not is_tag_name(name):
            return Err(MalformedTag(raw_interior=raw_interior, position=opening))
        if name not in model:
            return Err(UnknownTag(name=name, position=opening))

        parts.append(str(model[name]))
        cursor = close + len(CLOSE_TOKEN)


def render_template_text(template: str, variables: Mapping[str, str]) -> str:
    return render(variables, template).unwrap()
