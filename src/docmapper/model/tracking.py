"""Per-instance change tracking."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, SupportsIndex


@dataclass(slots=True)
class ChangeTracker:
    """Records field-level deltas for an instance once it has been persisted.

    New instances are inserted whole, so nothing is recorded until
    :meth:`mark_persisted` flips ``is_new``.
    """

    is_new: bool = True
    _pending: dict[str, Any] = field(default_factory=dict)

    @property
    def pending(self) -> Mapping[str, Any]:
        return MappingProxyType(self._pending)

    @property
    def has_changes(self) -> bool:
        return self.is_new or bool(self._pending)

    def record(self, field_name: str, value: Any) -> None:
        if self.is_new:
            return
        self._pending[field_name] = value

    def repoint(self, field_name: str, value: Any) -> None:
        """Swap the tracked value object without marking a new change."""

        if field_name in self._pending:
            self._pending[field_name] = value

    def compute_delta(self, values: Mapping[str, Any]) -> dict[str, Any]:
        if self.is_new:
            return dict(values)
        return dict(self._pending)

    def clear_written(self, written: Mapping[str, Any]) -> None:
        # Fields re-assigned while the write was in flight stay pending.
        for field_name, value in written.items():
            if field_name in self._pending and self._pending[field_name] is value:
                del self._pending[field_name]

    def mark_persisted(self) -> None:
        self.is_new = False
        self._pending.clear()

    def mark_new(self) -> None:
        self.is_new = True
        self._pending.clear()

    def copy_for(self, values: Mapping[str, Any]) -> ChangeTracker:
        """Tracker with the same state, pointing at another instance's values."""

        return ChangeTracker(
            is_new=self.is_new,
            _pending={name: values.get(name) for name in self._pending},
        )


class TrackedList(list[Any]):
    """List that reports in-place mutation to its owning instance.

    ``coerce`` is applied to every element that enters the list so that inline
    documents pushed onto a reference list become model instances.
    """

    __slots__ = ("_coerce", "_on_change")

    def __init__(
        self,
        items: Iterable[Any] = (),
        *,
        on_change: Callable[[], None],
        coerce: Callable[[Any], Any] | None = None,
    ) -> None:
        self._on_change = on_change
        self._coerce = coerce or (lambda item: item)
        super().__init__(self._coerce(item) for item in items)

    def _changed(self) -> None:
        self._on_change()

    def append(self, item: Any) -> None:
        super().append(self._coerce(item))
        self._changed()

    def extend(self, items: Iterable[Any]) -> None:
        super().extend(self._coerce(item) for item in items)
        self._changed()

    def insert(self, index: SupportsIndex, item: Any) -> None:
        super().insert(index, self._coerce(item))
        self._changed()

    def pop(self, index: SupportsIndex = -1) -> Any:
        item = super().pop(index)
        self._changed()
        return item

    def remove(self, item: Any) -> None:
        super().remove(item)
        self._changed()

    def clear(self) -> None:
        super().clear()
        self._changed()

    def sort(self, *args: Any, **kwargs: Any) -> None:
        super().sort(*args, **kwargs)
        self._changed()

    def reverse(self) -> None:
        super().reverse()
        self._changed()

    def __setitem__(self, index: Any, value: Any) -> None:
        if isinstance(index, slice):
            super().__setitem__(index, [self._coerce(item) for item in value])
        else:
            super().__setitem__(index, self._coerce(value))
        self._changed()

    def __delitem__(self, index: Any) -> None:
        super().__delitem__(index)
        self._changed()

    def __iadd__(self, items: Iterable[Any]) -> TrackedList:  # type: ignore[override]
        self.extend(items)
        return self

    def __imul__(self, count: SupportsIndex) -> TrackedList:  # type: ignore[override]
        super().__imul__(count)
        self._changed()
        return self


__all__ = ["ChangeTracker", "TrackedList"]
