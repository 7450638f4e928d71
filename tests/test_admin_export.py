from datetime import date
from decimal import Decimal

import pytest

from chamberbox.models.chamber import Chamber
from chamberbox.models.transaction import TransactionType
from chamberbox.services.export_service import ExportService, insert_statement
from chamberbox.services.finance_service import FinanceService

from .conftest import create_admin, create_chamber, create_doctor, login


class TestExportService:

    def test_backup_contains_every_table(self, db_session):
        doctor = create_doctor(db_session)
        create_chamber(db_session, doctor)

        result = ExportService(db_session, page_size=2).export_database(exported_by="admin@example.com")

        assert result["exported_by"] == "admin@example.com"
        assert "errors" not in result
        assert result["row_counts"]["chambers"] == 1
        assert result["row_counts"]["doctors"] == 1
        assert result["row_counts"]["subscription_plans"] == 5
        assert len(result["data"]["subscription_plans"]) == 5
        assert result["table_count"] == len(result["data"])

    def test_restore_script_orders_parents_first(self, db_session):
        doctor = create_doctor(db_session)
        create_chamber(db_session, doctor)

        script = ExportService(db_session).export_database(exported_by="admin")["restore_script"]
        lines = script.splitlines()
        users = next(i for i, line in enumerate(lines) if line.startswith("INSERT INTO users "))
        chambers = next(i for i, line in enumerate(lines) if line.startswith("INSERT INTO chambers "))
        assert users < chambers

    def test_insert_statement_escapes_text(self, db_session):
        doctor = create_doctor(db_session)
        FinanceService(db_session).add_transaction(doctor.id, {
            "amount": Decimal("250.50"),
            "type": TransactionType.EXPENSE,
            "category": "supplies",
            "description": "Doctor's gloves",
            "transaction_date": date(2026, 10, 1),
        })

        script = ExportService(db_session).export_database(exported_by="admin")["restore_script"]
        line = next(l for l in script.splitlines() if l.startswith("INSERT INTO transactions "))
        assert "'Doctor''s gloves'" in line
        assert "'2026-10-01'" in line
        assert "'EXPENSE'" in line
        assert "NULL" in line

    def test_schema_has_no_data(self, db_session):
        create_doctor(db_session, full_name="Dr. Unique Name")
        schema = ExportService(db_session).export_schema()

        assert "CREATE TABLE queue_sessions" in schema
        assert "uq_queue_sessions_slot" in schema
        assert "token_number" in schema
        assert "Dr. Unique Name" not in schema
        assert "INSERT INTO" not in schema


class TestExportApi:

    @pytest.fixture
    def admin_headers(self, client, db_session):
        create_admin(db_session)
        return login(client, "admin@example.com")

    def test_database_download(self, client, admin_headers):
        response = client.get("/api/v1/admin/export/database", headers=admin_headers)

        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert f"chamberbox_backup_{date.today().isoformat()}.json" in disposition
        assert response.json()["row_counts"]["users"] == 1

    def test_schema_download(self, client, admin_headers):
        response = client.get("/api/v1/admin/export/schema", headers=admin_headers)

        assert response.status_code == 200
        assert f"chamberbox_schema_{date.today().isoformat()}.sql" in response.headers["content-disposition"]
        assert "CREATE TABLE users" in response.text

    def test_doctors_cannot_export(self, client, db_session):
        create_doctor(db_session)
        headers = login(client, "doctor@example.com")

        assert client.get("/api/v1/admin/export/database", headers=headers).status_code == 403
        assert client.get("/api/v1/admin/export/schema", headers=headers).status_code == 403


def test_insert_statement_literals():
    statement = insert_statement(Chamber.__table__, {"id": 1, "name": "Main", "is_active": True})
    assert statement == "INSERT INTO chambers (id, name, is_active) VALUES (1, 'Main', TRUE);"
