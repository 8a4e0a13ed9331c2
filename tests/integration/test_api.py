"""API endpoint integration tests.

Tests the FastAPI endpoints for jornadas and liquidations.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient

from attendance_payroll.calculators.periods import LiquidationPeriod
from attendance_payroll.services.liquidation_service import LiquidationService

pytestmark = pytest.mark.asyncio

PQN_REQUEST = {"year": 2024, "month": 5, "period_type": "PQN"}


@pytest_asyncio.fixture
async def worked_fortnight(employees, jornada_repo, worked_days):
    for jornada in worked_days(1, date(2024, 5, 2), 10):
        await jornada_repo.save(jornada)


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        """Health endpoint should report the database."""
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert "timestamp" in data

    async def test_readiness_check(self, client: AsyncClient):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    async def test_liveness_check(self, client: AsyncClient):
        response = await client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestJornadaEndpoints:
    """Regeneration, listing and manual edits."""

    async def test_regenerate_and_list(self, client: AsyncClient, employees, store_punches):
        await store_punches(
            [
                (1, date(2024, 5, 6), 21, 45, "entry"),
                (1, date(2024, 5, 7), 5, 50, "exit"),
            ]
        )

        response = await client.post(
            "/api/v1/jornadas/regenerate",
            json={"date_from": "2024-05-06", "date_to": "2024-05-07", "as_of": "2024-05-10"},
        )
        assert response.status_code == 200
        assert response.json()["written"] == 1

        response = await client.get(
            "/api/v1/jornadas",
            params={"date_from": "2024-05-06", "date_to": "2024-05-07"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        item = data["items"][0]
        assert item["date"] == "2024-05-07"
        assert item["shift"] == "night"
        assert item["origin"] == "clock"
        # Decimals travel as strings.
        assert Decimal(item["worked_hours"]) == Decimal("8.0833")

    async def test_regenerate_inverted_range(self, client: AsyncClient, employees):
        response = await client.post(
            "/api/v1/jornadas/regenerate",
            json={"date_from": "2024-05-07", "date_to": "2024-05-06"},
        )
        assert response.status_code == 422

    async def test_manual_jornada(self, client: AsyncClient, employees):
        response = await client.put(
            "/api/v1/jornadas/1/2024-05-08",
            json={
                "actual_entry": "2024-05-08T06:00:00",
                "actual_exit": "2024-05-08T14:00:00",
                "day_hours": "8",
                "notes": "clock out of order",
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["origin"] == "manual"
        assert Decimal(data["worked_hours"]) == Decimal("8")

        listed = await client.get(
            "/api/v1/jornadas",
            params={"date_from": "2024-05-08", "date_to": "2024-05-08", "employee_id": 1},
        )
        assert listed.json()["items"][0]["notes"] == "clock out of order"

    async def test_manual_jornada_unknown_employee(self, client: AsyncClient, employees):
        response = await client.put("/api/v1/jornadas/99/2024-05-08", json={"worked_hours": "8"})
        assert response.status_code == 404

    async def test_manual_jornada_invariant_violation(self, client: AsyncClient, employees):
        response = await client.put(
            "/api/v1/jornadas/1/2024-05-08",
            json={"worked_hours": "8", "employee_status": "sick"},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_JORNADA"


class TestLiquidationEndpoints:
    """Simulation, execution and the stored period."""

    async def test_simulate(self, client: AsyncClient, worked_fortnight):
        response = await client.post("/api/v1/liquidations/simulate", json=PQN_REQUEST)

        assert response.status_code == 200
        data = response.json()
        assert data["period"] == "PQN 05/2024"
        assert data["total_net"] == "67147.50"
        assert [e["employee_id"] for e in data["employees"]] == [1, 2, 4]
        assert data["errors"] == []

    async def test_simulate_subset(self, client: AsyncClient, worked_fortnight):
        response = await client.post(
            "/api/v1/liquidations/simulate", json={**PQN_REQUEST, "employee_ids": [1]}
        )

        data = response.json()
        assert data["total_net"] == "73426.75"
        lines = {line["concept_code"]: line for line in data["employees"][0]["lines"]}
        assert lines["0010"]["amount"] == "80000.00"

    async def test_execute_and_get(self, client: AsyncClient, worked_fortnight):
        response = await client.post("/api/v1/liquidations/execute", json=PQN_REQUEST)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "executed"
        assert data["net"] == "67147.50"
        assert data["employee_count"] == 3

        detail = await client.get(f"/api/v1/liquidations/{data['period_id']}")
        assert detail.status_code == 200
        employees = {e["employee_id"]: e for e in detail.json()["employees"]}
        assert employees[1]["net"] == "73426.75"
        assert employees[1]["lines"][0]["concept_code"] == "0010"

    async def test_execute_rejects_subset(self, client: AsyncClient, worked_fortnight):
        response = await client.post(
            "/api/v1/liquidations/execute", json={**PQN_REQUEST, "employee_ids": [1]}
        )
        assert response.status_code == 422

    async def test_get_unknown_period(self, client: AsyncClient):
        response = await client.get(f"/api/v1/liquidations/{uuid4()}")
        assert response.status_code == 404

    async def test_invalid_period_type(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/liquidations/simulate", json={**PQN_REQUEST, "period_type": "XX"}
        )
        assert response.status_code == 422

    async def test_void_then_execute(self, client: AsyncClient, worked_fortnight):
        executed = (await client.post("/api/v1/liquidations/execute", json=PQN_REQUEST)).json()

        voided = await client.post(f"/api/v1/liquidations/{executed['period_id']}/void")
        assert voided.status_code == 200
        assert voided.json()["status"] == "voided"

        again = await client.post("/api/v1/liquidations/execute", json=PQN_REQUEST)
        assert again.status_code == 409
        assert again.json()["code"] == "PERIOD_CLOSED"

        twice = await client.post(f"/api/v1/liquidations/{executed['period_id']}/void")
        assert twice.status_code == 409
        assert twice.json()["code"] == "INVALID_TRANSITION"

    async def test_void_unknown_period(self, client: AsyncClient):
        period_id = LiquidationService.period_id_for(LiquidationPeriod.for_type(2024, 5, "PQN"))
        response = await client.post(f"/api/v1/liquidations/{period_id}/void")
        assert response.status_code == 404

    async def test_compare(self, client: AsyncClient, worked_fortnight):
        executed = (await client.post("/api/v1/liquidations/execute", json=PQN_REQUEST)).json()

        response = await client.post(
            f"/api/v1/liquidations/{executed['period_id']}/compare",
            json={
                "rows": [
                    {"employee_id": 1, "concept_code": "NET", "amount": "73426.75"},
                    {"employee_id": 1, "concept_code": "0010", "amount": "80000"},
                    {"employee_id": 2, "concept_code": "NET", "amount": "150.00"},
                    {"employee_id": 4, "concept_code": "NET", "amount": "-6429.25"},
                ]
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["matched_count"] == 3
        assert Decimal(data["precision"]) == Decimal("1")
        first = next(e for e in data["employees"] if e["employee_id"] == 1)
        assert "0010" not in {d["concept_code"] for d in first["concept_deltas"]}
