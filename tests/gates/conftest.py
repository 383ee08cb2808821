"""Gate fixtures built from the bundled catalog."""

from __future__ import annotations

import pytest

from rigshift.gates import InspectionGate, LubricationGate, SafetyGate, WarehouseGate


@pytest.fixture
def safety(catalog) -> SafetyGate:
    return SafetyGate(catalog.safety)


@pytest.fixture
def inspection(catalog) -> InspectionGate:
    return InspectionGate(catalog.inspection)


@pytest.fixture
def lubrication(catalog) -> LubricationGate:
    return LubricationGate(catalog.lubrication)


@pytest.fixture
def warehouse(catalog) -> WarehouseGate:
    return WarehouseGate(catalog.warehouse)
