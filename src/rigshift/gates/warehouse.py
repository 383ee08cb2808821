"""Warehouse stock gate.

A shift may only start on a rig when none of the consumables stocked for
its equipment model has fallen below its critical level.
"""

from __future__ import annotations

from typing import Protocol

from rigshift.catalog.models import WarehouseItem


class StockLookup(Protocol):
    def has_sufficient_stock(self, model_id: str) -> bool: ...

    def shortages(self, model_id: str) -> list[WarehouseItem]: ...


class WarehouseGate:
    """Stock levels for every model; satisfies :class:`StockLookup`."""

    def __init__(self, items: list[WarehouseItem]) -> None:
        self._initial = [item.model_copy() for item in items]
        self.reset()

    def reset(self) -> None:
        self.items = [item.model_copy() for item in self._initial]

    def get(self, item_id: str) -> WarehouseItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def items_for_model(self, model_id: str) -> list[WarehouseItem]:
        return [i for i in self.items if i.model_id == model_id]

    def shortages(self, model_id: str) -> list[WarehouseItem]:
        """Items for the model whose quantity is below the critical level."""
        return [i for i in self.items_for_model(model_id) if i.quantity < i.critical]

    def has_sufficient_stock(self, model_id: str) -> bool:
        return not self.shortages(model_id)

    def critical_items(self) -> list[WarehouseItem]:
        """Items at or below their critical level, across all models."""
        return [i for i in self.items if i.quantity <= i.critical]

    def low_stock_items(self) -> list[WarehouseItem]:
        """Items at or above critical but below twice the critical level."""
        return [i for i in self.items if i.critical <= i.quantity < i.critical * 2]

    def update_quantity(self, item_id: str, quantity: float) -> bool:
        item = self.get(item_id)
        if item is None:
            return False
        item.quantity = max(0.0, quantity)
        return True

    def consume(self, item_id: str, amount: float) -> bool:
        """Take ``amount`` out of stock; the quantity never goes below zero."""
        item = self.get(item_id)
        if item is None:
            return False
        item.quantity = max(0.0, item.quantity - amount)
        return True
