"""Pre-shift inspection gate.

Each inspection item has a checklist plus a photo before and after the
check.  An item is complete when every checklist entry is ticked and both
photos exist; unticking an entry makes it incomplete again.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rigshift.catalog.models import InspectionTemplate

from .base import percentage


@dataclass
class ChecklistEntry:
    name: str
    checked: bool = False


@dataclass
class InspectionItem:
    id: str
    name: str
    required: bool
    checklist: list[ChecklistEntry] = field(default_factory=list)
    status: str = "pending"  # "pending" or "completed"
    photo_before: str | None = None
    photo_after: str | None = None

    @property
    def checklist_complete(self) -> bool:
        return all(c.checked for c in self.checklist)

    @property
    def complete(self) -> bool:
        return self.checklist_complete and bool(self.photo_before and self.photo_after)


@dataclass(frozen=True)
class InspectionSnapshot:
    incomplete: tuple[str, ...]

    @property
    def complete(self) -> bool:
        return not self.incomplete


class InspectionGate:
    def __init__(self, templates: list[InspectionTemplate]) -> None:
        self._templates = list(templates)
        self.reset()

    def reset(self) -> None:
        self.items = [
            InspectionItem(
                id=t.id,
                name=t.name,
                required=t.required,
                checklist=[ChecklistEntry(name) for name in t.checklist],
            )
            for t in self._templates
        ]

    def get(self, item_id: str) -> InspectionItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def toggle_checklist(self, item_id: str, index: int) -> bool:
        """Flip one checklist entry. Returns False for an unknown item or index."""
        item = self.get(item_id)
        if item is None or not 0 <= index < len(item.checklist):
            return False
        entry = item.checklist[index]
        entry.checked = not entry.checked
        if not entry.checked:
            item.status = "pending"
        return True

    def set_photo_before(self, item_id: str, ref: str) -> bool:
        item = self.get(item_id)
        if item is None:
            return False
        item.photo_before = ref
        return True

    def set_photo_after(self, item_id: str, ref: str) -> bool:
        """Store the after photo; the item is marked completed only if its checklist is done."""
        item = self.get(item_id)
        if item is None:
            return False
        item.photo_after = ref
        if item.checklist_complete:
            item.status = "completed"
        return True

    def is_item_complete(self, item_id: str) -> bool:
        item = self.get(item_id)
        return item is not None and item.complete

    def _required(self) -> list[InspectionItem]:
        return [i for i in self.items if i.required]

    def incomplete_items(self) -> list[InspectionItem]:
        return [i for i in self._required() if not i.complete]

    def is_complete(self) -> bool:
        return not self.incomplete_items()

    def completion_percentage(self) -> int:
        required = self._required()
        return percentage(sum(1 for i in required if i.complete), len(required))

    def snapshot(self) -> InspectionSnapshot:
        return InspectionSnapshot(incomplete=tuple(i.id for i in self.incomplete_items()))
