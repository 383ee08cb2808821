"""Safety briefing gate.

Every safety text must be read before the operator can confirm the
briefing with a signature.
"""

from __future__ import annotations

from dataclasses import dataclass

from rigshift.catalog.models import SafetyText

from .base import percentage


@dataclass
class SafetyItem:
    id: str
    title: str
    content: str
    read: bool = False


@dataclass(frozen=True)
class SafetySnapshot:
    all_read: bool
    confirmed: bool
    signature: str | None
    unread: tuple[str, ...]

    @property
    def complete(self) -> bool:
        return self.all_read and self.confirmed and self.signature is not None


class SafetyGate:
    def __init__(self, texts: list[SafetyText]) -> None:
        self._texts = list(texts)
        self.reset()

    def reset(self) -> None:
        self.items = [SafetyItem(t.id, t.title, t.content) for t in self._texts]
        self.confirmed = False
        self.signature: str | None = None

    def _find(self, item_id: str) -> SafetyItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def mark_read(self, item_id: str) -> bool:
        item = self._find(item_id)
        if item is None:
            return False
        item.read = True
        return True

    def all_read(self) -> bool:
        return bool(self.items) and all(i.read for i in self.items)

    def unread_items(self) -> list[SafetyItem]:
        return [i for i in self.items if not i.read]

    def read_percentage(self) -> int:
        return percentage(sum(1 for i in self.items if i.read), len(self.items))

    def confirm(self, signature: str) -> bool:
        """Record the operator's signature; refused until every item is read."""
        if not self.all_read() or not signature:
            return False
        self.signature = signature
        self.confirmed = True
        return True

    def is_complete(self) -> bool:
        return self.snapshot().complete

    def snapshot(self) -> SafetySnapshot:
        return SafetySnapshot(
            all_read=self.all_read(),
            confirmed=self.confirmed,
            signature=self.signature,
            unread=tuple(i.id for i in self.unread_items()),
        )
