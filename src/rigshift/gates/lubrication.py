"""Lubrication gate, scoped to the selected rig's equipment model.

Taking the photo of a lubrication point is what completes it: the photo
marks the point completed and records the required amount of grease as
used.  There is no separate grease-quantity entry.
"""

from __future__ import annotations

from dataclasses import dataclass

from rigshift.catalog.models import LubricationPoint

from .base import percentage


@dataclass
class LubricationItem:
    id: str
    name: str
    required: bool
    grease_required: float
    grease_type: str = ""
    status: str = "pending"  # "pending" or "completed"
    photo: str | None = None
    grease_used: float = 0.0

    @property
    def complete(self) -> bool:
        return bool(self.photo) and self.grease_used >= self.grease_required


@dataclass(frozen=True)
class LubricationSnapshot:
    model_id: str | None
    incomplete: tuple[str, ...]

    @property
    def complete(self) -> bool:
        return self.model_id is not None and not self.incomplete


class LubricationGate:
    def __init__(self, points: list[LubricationPoint]) -> None:
        self._points = list(points)
        self.reset()

    def reset(self) -> None:
        self.model_id: str | None = None
        self.items: list[LubricationItem] = []

    def initialize(self, model_id: str) -> None:
        """Load the points that apply to ``model_id``, all pending."""
        self.model_id = model_id
        self.items = [
            LubricationItem(
                id=p.id,
                name=p.name,
                required=p.required,
                grease_required=p.grease_required,
                grease_type=p.grease_type,
            )
            for p in self._points
            if model_id in p.model_ids
        ]

    def get(self, item_id: str) -> LubricationItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def set_photo(self, item_id: str, ref: str) -> bool:
        item = self.get(item_id)
        if item is None:
            return False
        item.photo = ref
        item.status = "completed"
        item.grease_used = item.grease_required
        return True

    def is_item_complete(self, item_id: str) -> bool:
        item = self.get(item_id)
        return item is not None and item.complete

    def incomplete_items(self) -> list[LubricationItem]:
        """Every applicable point still missing its photo, optional ones included."""
        return [i for i in self.items if not i.complete]

    def is_complete(self) -> bool:
        return self.snapshot().complete

    def completion_percentage(self) -> int:
        return percentage(sum(1 for i in self.items if i.complete), len(self.items))

    def total_grease_required(self) -> float:
        return sum(i.grease_required for i in self.items)

    def total_grease_used(self) -> float:
        return sum(i.grease_used for i in self.items)

    def snapshot(self) -> LubricationSnapshot:
        return LubricationSnapshot(
            model_id=self.model_id,
            incomplete=tuple(i.id for i in self.incomplete_items()),
        )
