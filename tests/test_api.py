"""API endpoint tests.

Runs the FastAPI app in-process over httpx against the per-test SQLite database.
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from payroll_admin.api.app import create_app
from payroll_admin.config import Settings
from payroll_admin.database import Database

from .conftest import Seed

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def client(database: Database) -> AsyncGenerator[AsyncClient, None]:
    settings = Settings(
        database_url=database.database_url,
        host="127.0.0.1",
        port=8000,
        debug=False,
    )
    app = create_app(settings=settings, database=database)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def payroll_body(employee_id: int, **overrides) -> dict:
    body = {
        "employee_id": employee_id,
        "month": 3,
        "year": 2025,
        "gross_amount": "5000.00",
        "tax_deductions": "750.00",
        "other_deductions": "0",
        "bonuses": "200.00",
    }
    body.update(overrides)
    return body


class TestHealthEndpoint:
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"


class TestPayrollEndpoints:
    async def test_create_payroll(self, client: AsyncClient, seeded: Seed):
        response = await client.post(
            "/api/v1/payrolls",
            json=payroll_body(seeded.alice_id),
            headers={"X-User-ID": str(seeded.admin_id)},
        )

        assert response.status_code == 201, response.text
        data = response.json()
        assert data["net_amount"] == "4450.00"
        assert data["status"] == "pending"
        assert data["processed_by"] == seeded.admin_id
        assert data["employee"]["user"]["username"] == "alice.smith"
        assert data["employee"]["user"]["full_name"] == "Alice Smith"
        assert "password" not in data["employee"]["user"]

    async def test_duplicate_period_is_conflict(self, client: AsyncClient, seeded: Seed):
        await client.post("/api/v1/payrolls", json=payroll_body(seeded.alice_id))
        response = await client.post("/api/v1/payrolls", json=payroll_body(seeded.alice_id))

        assert response.status_code == 409
        assert response.json()["code"] == "DuplicatePeriod"

    async def test_validation_error_names_field(self, client: AsyncClient, seeded: Seed):
        response = await client.post(
            "/api/v1/payrolls", json=payroll_body(seeded.alice_id, month=13)
        )

        assert response.status_code == 422
        assert response.json()["code"] == "OutOfRange"
        assert response.json()["field"] == "month"

    async def test_invalid_amount(self, client: AsyncClient, seeded: Seed):
        response = await client.post(
            "/api/v1/payrolls", json=payroll_body(seeded.alice_id, gross_amount="lots")
        )

        assert response.status_code == 422
        assert response.json()["code"] == "InvalidAmount"

    async def test_amount_too_large(self, client: AsyncClient, seeded: Seed):
        response = await client.post(
            "/api/v1/payrolls", json=payroll_body(seeded.alice_id, gross_amount="1e30")
        )

        assert response.status_code == 422
        assert response.json()["field"] == "gross_amount"

    async def test_get_missing_payroll(self, client: AsyncClient, seeded: Seed):
        response = await client.get("/api/v1/payrolls/999")

        assert response.status_code == 404
        assert response.json()["code"] == "NotFound"

    async def test_status_lifecycle(self, client: AsyncClient, seeded: Seed):
        created = (
            await client.post("/api/v1/payrolls", json=payroll_body(seeded.alice_id))
        ).json()

        completed = await client.patch(
            f"/api/v1/payrolls/{created['id']}", json={"status": "completed", "bonuses": "0"}
        )
        assert completed.status_code == 200, completed.text
        assert completed.json()["net_amount"] == "4250.00"
        assert completed.json()["processed_at"] is not None

        reopened = await client.patch(
            f"/api/v1/payrolls/{created['id']}", json={"status": "pending"}
        )
        assert reopened.status_code == 422
        assert reopened.json()["code"] == "InvalidTransition"

    async def test_patch_rejects_unknown_fields(self, client: AsyncClient, seeded: Seed):
        created = (
            await client.post("/api/v1/payrolls", json=payroll_body(seeded.alice_id))
        ).json()

        response = await client.patch(
            f"/api/v1/payrolls/{created['id']}", json={"salary": "1"}
        )
        assert response.status_code == 422

    async def test_delete_twice(self, client: AsyncClient, seeded: Seed):
        created = (
            await client.post("/api/v1/payrolls", json=payroll_body(seeded.alice_id))
        ).json()

        first = await client.delete(f"/api/v1/payrolls/{created['id']}")
        second = await client.delete(f"/api/v1/payrolls/{created['id']}")

        assert first.status_code == 204
        assert second.status_code == 204

    async def test_listing_routes(self, client: AsyncClient, seeded: Seed):
        await client.post("/api/v1/payrolls", json=payroll_body(seeded.alice_id, month=2))
        await client.post("/api/v1/payrolls", json=payroll_body(seeded.bob_id, month=3))

        everything = await client.get("/api/v1/payrolls")
        assert [p["month"] for p in everything.json()] == [3, 2]

        march = await client.get("/api/v1/payrolls", params={"month": 3, "year": 2025})
        assert [p["employee_id"] for p in march.json()] == [seeded.bob_id]

        alice = await client.get(f"/api/v1/payrolls/employee/{seeded.alice_id}")
        assert len(alice.json()) == 1

        recent = await client.get("/api/v1/payrolls/recent", params={"limit": 1})
        assert [p["employee_id"] for p in recent.json()] == [seeded.bob_id]

    @pytest.mark.parametrize(
        "params, missing", [({"month": 3}, "year"), ({"year": 2025}, "month")]
    )
    async def test_period_filter_needs_month_and_year(
        self, client: AsyncClient, seeded: Seed, params, missing
    ):
        response = await client.get("/api/v1/payrolls", params=params)

        assert response.status_code == 422
        assert response.json()["field"] == missing

    async def test_monthly_processing(self, client: AsyncClient, seeded: Seed):
        response = await client.post(
            "/api/v1/payrolls/process",
            json={"month": 4, "year": 2025, "tax_rate": "0.15"},
            headers={"X-User-ID": str(seeded.admin_id)},
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert (data["created"], data["skipped"]) == (2, 1)
        skipped = [o for o in data["outcomes"] if o["status"] == "skipped"]
        assert skipped[0]["reason"] == "InvalidReference"

    async def test_bad_user_header(self, client: AsyncClient, seeded: Seed):
        response = await client.post(
            "/api/v1/payrolls",
            json=payroll_body(seeded.alice_id),
            headers={"X-User-ID": "admin"},
        )
        assert response.status_code == 400


class TestEmployeeAndDepartmentEndpoints:
    async def test_create_employee_with_new_user(self, client: AsyncClient, seeded: Seed):
        response = await client.post(
            "/api/v1/employees",
            json={
                "is_new_user": True,
                "first_name": "Jane",
                "last_name": "Doe",
                "email": "jane@example.com",
                "department_id": seeded.hr_id,
                "position": "Analyst",
                "tax_id": "987-65-4321",
                "tax_status": "single",
                "bank_name": "Second Bank",
                "account_number": "1",
                "routing_number": "2",
                "base_salary": "4800",
                "join_date": "2024-06-03",
            },
        )

        assert response.status_code == 201, response.text
        data = response.json()
        assert data["user"]["username"] == "jane.doe"
        assert data["department"]["name"] == "HR"
        assert data["base_salary"] == "4800.00"

    async def test_delete_employee(self, client: AsyncClient, seeded: Seed):
        assert (await client.delete(f"/api/v1/employees/{seeded.bob_id}")).status_code == 204
        assert (await client.get(f"/api/v1/employees/{seeded.bob_id}")).status_code == 404

    async def test_department_crud(self, client: AsyncClient, seeded: Seed):
        created = await client.post("/api/v1/departments", json={"name": "Legal"})
        assert created.status_code == 201

        duplicate = await client.post("/api/v1/departments", json={"name": "legal"})
        assert duplicate.status_code == 409

        blocked = await client.delete(f"/api/v1/departments/{seeded.it_id}")
        assert blocked.status_code == 409
        assert blocked.json()["code"] == "DependentRecords"

        names = [d["name"] for d in (await client.get("/api/v1/departments")).json()]
        assert names == ["HR", "IT", "Legal"]


class TestDashboardEndpoints:
    async def test_summary(self, client: AsyncClient, seeded: Seed):
        now = datetime.now(timezone.utc)
        await client.post(
            "/api/v1/payrolls",
            json=payroll_body(seeded.alice_id, month=now.month, year=now.year),
        )

        response = await client.get("/api/v1/dashboard/summary")

        assert response.status_code == 200
        data = response.json()
        assert data["employee_count"] == 2
        assert data["total_payroll"] == "4450.00"
        assert data["average_salary"] == "5000.00"
        assert data["pending_count"] == 1

    async def test_departments(self, client: AsyncClient, seeded: Seed):
        response = await client.get("/api/v1/dashboard/departments")

        assert response.status_code == 200
        assert [(d["name"], d["percentage"]) for d in response.json()] == [
            ("HR", 50),
            ("IT", 50),
        ]


class TestUserEndpoints:
    async def test_list_and_get_users(self, client: AsyncClient, seeded: Seed):
        listing = await client.get("/api/v1/users")

        assert listing.status_code == 200
        assert [u["username"] for u in listing.json()] == ["admin", "alice.smith"]
        assert all("password" not in u for u in listing.json())

        admin = await client.get(f"/api/v1/users/{seeded.admin_id}")
        assert admin.json()["full_name"] == "Admin User"

        missing = await client.get("/api/v1/users/999")
        assert missing.status_code == 404

    async def test_create_user(self, client: AsyncClient, seeded: Seed):
        body = {
            "username": "pat.lee",
            "password": "secret-1",
            "first_name": "Pat",
            "last_name": "Lee",
            "email": "pat@example.com",
        }

        created = await client.post("/api/v1/users", json=body)
        duplicate = await client.post("/api/v1/users", json={**body, "email": "x@example.com"})

        assert created.status_code == 201, created.text
        assert created.json()["role"] == "employee"
        assert duplicate.status_code == 409
