"""Reference data: rigs, operators, checklists, lubrication points, stock."""

from .loader import CatalogError, load_catalog
from .models import (
    Catalog,
    InspectionTemplate,
    LubricationPoint,
    Operator,
    Rig,
    SafetyText,
    WarehouseItem,
)

__all__ = [
    "Catalog",
    "CatalogError",
    "InspectionTemplate",
    "LubricationPoint",
    "Operator",
    "Rig",
    "SafetyText",
    "WarehouseItem",
    "load_catalog",
]
