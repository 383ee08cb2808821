"""Domain gates consulted by the workflow before each step may advance."""

from .inspection import InspectionGate, InspectionItem, InspectionSnapshot
from .lubrication import LubricationGate, LubricationItem, LubricationSnapshot
from .safety import SafetyGate, SafetyItem, SafetySnapshot
from .warehouse import StockLookup, WarehouseGate

__all__ = [
    "InspectionGate",
    "InspectionItem",
    "InspectionSnapshot",
    "LubricationGate",
    "LubricationItem",
    "LubricationSnapshot",
    "SafetyGate",
    "SafetyItem",
    "SafetySnapshot",
    "StockLookup",
    "WarehouseGate",
]
