"""Reference data schema.

Rig catalog, operators, safety texts, inspection checklist templates,
lubrication points and warehouse stock, as loaded at boot.  Each list is
kept in file order.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class Operator(BaseModel):
    """Crew member allowed to open a shift."""

    id: str = Field(..., min_length=1)
    name: str = ""
    pin: str = Field(..., min_length=1)


class Rig(BaseModel):
    """A drilling rig on a site."""

    id: str = Field(..., min_length=1)
    name: str
    location: str = ""
    model_id: str = Field(..., min_length=1, description="Equipment model, e.g. 'PVE-50PR'")
    telematics_id: str | None = None


class SafetyText(BaseModel):
    id: str = Field(..., min_length=1)
    title: str
    content: str = ""


class InspectionTemplate(BaseModel):
    """An inspection item and the checklist entries it consists of."""

    id: str = Field(..., min_length=1)
    name: str
    required: bool = True
    checklist: list[str] = Field(..., min_length=1)


class LubricationPoint(BaseModel):
    """A grease point and the equipment models it applies to."""

    id: str = Field(..., min_length=1)
    name: str
    required: bool = True
    grease_required: float = Field(..., ge=0)
    grease_type: str = ""
    model_ids: list[str] = Field(default_factory=list)


class WarehouseItem(BaseModel):
    """Stock on hand for one consumable of one equipment model."""

    id: str = Field(..., min_length=1)
    name: str
    model_id: str
    quantity: float = Field(..., ge=0)
    critical: float = Field(..., ge=0, description="Minimum stock needed to start a shift")
    unit: str = ""


def _check_unique(kind: str, ids: list[str]) -> None:
    seen: set[str] = set()
    for item_id in ids:
        if item_id in seen:
            raise ValueError(f"duplicate {kind} id {item_id!r}")
        seen.add(item_id)


class Catalog(BaseModel):
    """All reference data for one device."""

    operators: list[Operator] = Field(default_factory=list)
    rigs: list[Rig] = Field(default_factory=list)
    safety: list[SafetyText] = Field(default_factory=list)
    inspection: list[InspectionTemplate] = Field(default_factory=list)
    lubrication: list[LubricationPoint] = Field(default_factory=list)
    warehouse: list[WarehouseItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def _ids_unique(self) -> Catalog:
        _check_unique("operator", [o.id for o in self.operators])
        _check_unique("rig", [r.id for r in self.rigs])
        _check_unique("safety item", [s.id for s in self.safety])
        _check_unique("inspection item", [i.id for i in self.inspection])
        _check_unique("lubrication point", [p.id for p in self.lubrication])
        _check_unique("warehouse item", [w.id for w in self.warehouse])
        return self

    def get_rig(self, rig_id: str) -> Rig | None:
        return next((r for r in self.rigs if r.id == rig_id), None)

    def get_operator(self, operator_id: str) -> Operator | None:
        return next((o for o in self.operators if o.id == operator_id), None)
