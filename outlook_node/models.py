"""Typed containers shared across the node."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from .errors import NodeOperationError
from .utils import file_extension, guess_mime_type

_MISSING = object()


@dataclass(frozen=True)
class BinaryData:
    """A named binary payload carried by an item."""

    data: bytes
    mime_type: str
    file_name: Optional[str] = None

    @classmethod
    def prepare(cls, data: bytes, file_name: str | None, mime_type: str | None = None) -> "BinaryData":
        """Wrap downloaded bytes, guessing the MIME type from the name when the server gave none."""
        resolved = mime_type or guess_mime_type(file_name)
        return cls(data=data, mime_type=resolved, file_name=file_name)

    @property
    def file_extension(self) -> str | None:
        return file_extension(self.file_name)

    @property
    def size(self) -> int:
        return len(self.data)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass
class Item:
    """One unit of workflow data: a JSON object plus named binaries."""

    json: dict[str, Any] = field(default_factory=dict)
    binary: dict[str, BinaryData] = field(default_factory=dict)
    paired_item: Optional[int] = None

    def with_binary(self, key: str, value: BinaryData) -> "Item":
        """Return a copy whose binary map holds ``key`` next to the existing entries."""
        merged = dict(self.binary)
        merged[key] = value
        return Item(json=dict(self.json), binary=merged, paired_item=self.paired_item)

    def with_error(self, message: str) -> "Item":
        """Return a copy whose JSON is replaced by an error marker; binaries are kept."""
        return Item(json={"error": message}, binary=dict(self.binary), paired_item=self.paired_item)


@dataclass
class ItemResult:
    """Outcome of running one operation against one input item."""

    index: int
    items: list[Item] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, index: int, items: Sequence[Item]) -> "ItemResult":
        return cls(index=index, items=list(items))

    @classmethod
    def failure(cls, index: int, error: Exception) -> "ItemResult":
        return cls(index=index, error=error)


class NodeParameters:
    """Per-item parameter resolution.

    Accepts either one mapping shared by every item or a sequence holding one
    mapping per item. A single-entry sequence behaves like a shared mapping.
    """

    def __init__(self, values: Mapping[str, Any] | Sequence[Mapping[str, Any]] | None = None) -> None:
        if values is None:
            self._per_item: list[Mapping[str, Any]] = [{}]
        elif isinstance(values, Mapping):
            self._per_item = [values]
        else:
            self._per_item = list(values) or [{}]

    def for_item(self, index: int) -> Mapping[str, Any]:
        if len(self._per_item) == 1:
            return self._per_item[0]
        if index >= len(self._per_item):
            raise NodeOperationError(
                f"No parameters given for item {index}; {len(self._per_item)} parameter sets for a longer batch",
                item_index=index,
            )
        return self._per_item[index]

    def get(self, name: str, index: int, default: Any = _MISSING) -> Any:
        values = self.for_item(index)
        if name in values and values[name] is not None:
            return values[name]
        if default is _MISSING:
            raise NodeOperationError(f'Missing required parameter "{name}"', item_index=index)
        return default
