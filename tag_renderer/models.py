from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Union


@dataclass(frozen=True)
class UnknownTag:
    name: str
    position: int

    kind = "unknown_tag"

    @property
    def message(self) -> str:
        return f"Unknown tag '{self.name}' at position {self.position}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, **asdict(self)}


@dataclass(frozen=True)
class MalformedTag:
    raw_interior: str
    position: int

    kind = "malformed_tag"

    @property
    def message(self) -> str:
        return f"Malformed tag {self.raw_interior!r} at position {self.position}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, **asdict(self)}


@dataclass(frozen=True)
class UnterminatedPlaceholder:
    position: int

    kind = "unterminated_placeholder"

    @property
    def message(self) -> str:
        return f"Unterminated tag starting at position {self.position}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, **asdict(self)}


RenderingError = Union[UnknownTag, MalformedTag, UnterminatedPlaceholder]


class TemplateRenderError(ValueError):
    """Raised when a caller asks for the rendered text of a failed render."""

    def __init__(self, error: RenderingError):
        super().__init__(error.message)
        self.error = error


@dataclass(frozen=True)
class Ok:
    value: str

    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> str:
        return self.value


@dataclass(frozen=True)
class Err:
    error: RenderingError

    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> str:
        raise TemplateRenderError(self.error)


RenderResult = Union[Ok, Err]


@dataclass(frozen=True)
class ModelStats:
    total_rows: int
    valid_rows: int
    invalid_name_rows: int
    duplicate_rows: int
    empty_rows: int


@dataclass(frozen=True)
class ModelParseResult:
    model: dict[str, str]
    stats: ModelStats


@dataclass(frozen=True)
class WorkerOptions:
    raise_on_invalid_model: bool = True
    names_preview_limit: int = 20
