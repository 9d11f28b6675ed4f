import csv
import io
from datetime import datetime, timedelta, timezone

from cargotrack.services import operations as lifecycle
from cargotrack.services import reports
from cargotrack.utils import utcnow


NOW = datetime(2024, 5, 10, 18, 0)


def _op(db, vehicle, material, company="Transportes Sul", op_type="loading"):
    return lifecycle.create_operation(db, {
        "vehicle_id": vehicle.id,
        "material_id": material.id,
        "type": op_type,
        "driver": "João Silva",
        "transport_company": company,
    })


def _completed(db, vehicle, material, start, minutes, **kwargs):
    op = _op(db, vehicle, material, **kwargs)
    op_type = op.type
    for status in ("at_gate", op_type, "completed"):
        op = lifecycle.transition(db, op, status)
    op = lifecycle.record_actual_start(db, op, start)
    return lifecycle.record_actual_end(db, op, start + timedelta(minutes=minutes))


def _in_progress(db, vehicle, material, started, **kwargs):
    op = _op(db, vehicle, material, **kwargs)
    for status in ("at_gate", op.type):
        op = lifecycle.transition(db, op, status)
    return lifecycle.record_actual_start(db, op, started)


def test_format_duration():
    assert reports.format_duration(None) is None
    assert reports.format_duration(90) == "1h 30min"
    assert reports.format_duration(45.9) == "0h 45min"


def test_summary(db, vehicle, material):
    _completed(db, vehicle, material, NOW - timedelta(hours=3), 60)
    _completed(db, vehicle, material, NOW - timedelta(days=2), 120)
    _in_progress(db, vehicle, material, NOW - timedelta(hours=6))
    _in_progress(db, vehicle, material, NOW - timedelta(minutes=20), op_type="unloading")
    _op(db, vehicle, material)

    result = reports.summary(db, now=NOW)
    assert result["status_counts"] == {
        "scheduled": 1, "at_gate": 0, "loading": 1, "unloading": 1, "completed": 2,
    }
    assert result["completed_today"] == 1
    assert result["in_progress"] == 2
    assert result["active_issues"] == 1
    assert result["average_duration_minutes"] == 90.0
    assert result["average_duration"] == "1h 30min"
    assert len(result["recent_completed"]) == 2


def test_stuck_report(db, vehicle, material):
    stuck = _in_progress(db, vehicle, material, NOW - timedelta(hours=5))
    _in_progress(db, vehicle, material, NOW - timedelta(hours=1))
    rows = reports.stuck_report(db, now=NOW)
    assert [r["operation"].id for r in rows] == [stuck.id]
    assert rows[0]["hours_in_progress"] == 5.0


def test_company_breakdown(db, vehicle, material):
    _completed(db, vehicle, material, NOW - timedelta(hours=3), 30, company="Rápido Norte")
    _completed(db, vehicle, material, NOW - timedelta(hours=3), 50, company="Rápido Norte", op_type="unloading")
    _in_progress(db, vehicle, material, NOW - timedelta(hours=1), company="Rápido Norte")
    _op(db, vehicle, material, company="Transportes Sul")

    rows = reports.company_breakdown(db)
    assert [r["transport_company"] for r in rows] == ["Rápido Norte", "Transportes Sul"]
    norte = rows[0]
    assert (norte["total"], norte["completed"], norte["in_progress"]) == (3, 2, 1)
    assert (norte["loading"], norte["unloading"]) == (2, 1)
    assert norte["average_duration_minutes"] == 40.0
    assert rows[1]["average_duration_minutes"] is None


def test_summary_api(client, make_user, db, vehicle, material):
    _completed(db, vehicle, material, utcnow() - timedelta(hours=2), 45)
    _, headers = make_user(permissions=["report:view"])
    response = client.get("/api/reports/summary", headers=headers)
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["statusCounts"]["completed"] == 1
    assert body["averageDurationMinutes"] == 45.0
    assert body["recentCompleted"][0]["vehicle"]["plate"] == "ABC1D23"

    assert client.get("/api/reports/stuck", headers=headers).json() == []
    assert client.get("/api/reports/companies", headers=headers).status_code == 403


def test_company_report_needs_management(client, make_user, db, vehicle, material):
    _op(db, vehicle, material)
    _, headers = make_user(permissions=["report:management"])
    response = client.get("/api/reports/companies", headers=headers)
    assert response.status_code == 200
    assert response.json()[0]["transportCompany"] == "Transportes Sul"


def test_export_requires_view_and_export(client, make_user, db, vehicle, material):
    _op(db, vehicle, material)
    _, export_only = make_user(permissions=["report:export"])
    assert client.get("/api/reports/export.csv", headers=export_only).status_code == 403

    _, headers = make_user(permissions=["report:view", "report:export"])
    response = client.get("/api/reports/export.csv", headers=headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]

    rows = list(csv.DictReader(io.StringIO(response.text)))
    assert len(rows) == 1
    assert rows[0]["vehicle_plate"] == "ABC1D23"
    assert rows[0]["status"] == "scheduled"
    assert rows[0]["duration_minutes"] == ""


def test_export_filters_by_status(client, admin_headers, db, vehicle, material):
    _op(db, vehicle, material)
    _in_progress(db, vehicle, material, utcnow())
    response = client.get("/api/reports/export.csv", params={"status": "loading"}, headers=admin_headers)
    rows = list(csv.DictReader(io.StringIO(response.text)))
    assert [r["status"] for r in rows] == ["loading"]


def test_reports_with_zoned_timestamps(db, vehicle, material):
    op = _completed(db, vehicle, material, NOW - timedelta(hours=3), 60)
    # Postgres loads timestamptz values with their zone
    op.actual_start_time = (NOW - timedelta(hours=3)).replace(tzinfo=timezone.utc)
    op.actual_end_time = (NOW - timedelta(hours=2)).replace(tzinfo=timezone.utc)

    result = reports.summary(db, now=NOW)
    assert result["completed_today"] == 1
    assert result["average_duration_minutes"] == 60.0
    assert reports.elapsed_hours(op, NOW) == 3.0
    assert reports.summary(db, now=NOW.replace(tzinfo=timezone.utc))["completed_today"] == 1
