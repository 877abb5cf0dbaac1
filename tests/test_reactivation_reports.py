from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from rent_manager.core.errors import NotFoundError
from rent_manager.models.enums import ReactivationStatus, UserType
from rent_manager.models.reactivation_request import AccountReactivationRequest
from rent_manager.services.reactivation_reports import get_request_details, get_stats, list_requests

from tests.fixtures_data import STRONG_PASSWORD

NOW = datetime(2024, 3, 15, 12, 0)


@pytest.fixture()
def seeded(db, inactive_tenant, super_admin):
    rows = [
        ("AAAA0001", UserType.TENANT, "TEN042", "tenant@example.com", ReactivationStatus.REJECTED, NOW - timedelta(days=3)),
        ("AAAA0002", UserType.TENANT, "TEN042", "tenant@example.com", ReactivationStatus.PENDING, NOW - timedelta(hours=1)),
        ("AAAA0003", UserType.AGENT, "AGT007", "agent@example.com", ReactivationStatus.APPROVED, NOW - timedelta(days=1)),
        ("AAAA0004", UserType.CLIENT, "CLI100", "client@example.com", ReactivationStatus.PENDING, NOW - timedelta(days=40)),
    ]
    for request_id, user_type, user_id, email, status, created_at in rows:
        db.add(
            AccountReactivationRequest(
                request_id=request_id,
                user_type=user_type,
                user_id=user_id,
                email=email,
                request_reason="please",
                status=status,
                reviewed_by="SUP001" if status != ReactivationStatus.PENDING else None,
                created_at=created_at,
            )
        )
    db.commit()


def test_list_orders_pending_first_then_newest(db, seeded):
    result = list_requests(db)

    assert [row["request_id"] for row in result["requests"]] == ["AAAA0002", "AAAA0004", "AAAA0003", "AAAA0001"]
    assert result["pagination"] == {"page": 1, "limit": 20, "total": 4, "total_pages": 1}
    assert result["stats"]["pending"] == 2
    assert result["stats"]["total"] == 4


def test_list_enriches_with_account_and_reviewer(db, seeded):
    rows = {row["request_id"]: row for row in list_requests(db)["requests"]}

    assert rows["AAAA0002"]["user_full_name"] == "Tom Renter"
    assert rows["AAAA0002"]["current_account_status"] == "0"
    assert rows["AAAA0001"]["reviewed_by_name"] == "Grace Hopper"
    assert rows["AAAA0003"]["user_full_name"] is None


def test_list_filters_and_paginates(db, seeded):
    by_type = list_requests(db, user_type=UserType.TENANT)
    by_status = list_requests(db, status=ReactivationStatus.APPROVED)
    by_search = list_requests(db, search="AGENT@")
    by_dates = list_requests(db, date_from=date(2024, 3, 12), date_to=date(2024, 3, 14))
    second_page = list_requests(db, page=2, limit=3)

    assert by_type["pagination"]["total"] == 2
    assert [row["request_id"] for row in by_status["requests"]] == ["AAAA0003"]
    assert [row["request_id"] for row in by_search["requests"]] == ["AAAA0003"]
    assert {row["request_id"] for row in by_dates["requests"]} == {"AAAA0001", "AAAA0003"}
    assert second_page["pagination"]["total_pages"] == 2
    assert [row["request_id"] for row in second_page["requests"]] == ["AAAA0001"]


def test_details_lookup_is_case_insensitive(db, seeded):
    assert get_request_details(db, "aaaa0003")["email"] == "agent@example.com"

    with pytest.raises(NotFoundError):
        get_request_details(db, "ZZZZ9999")


def test_stats_summary(db, seeded):
    stats = get_stats(db, now=NOW)

    assert stats["today"] == 1
    assert len(stats["daily"]) == 7
    assert stats["daily"][-1] == {"date": "2024-03-15", "count": 1}
    assert stats["user_types"] == {"admin": 0, "agent": 1, "client": 1, "tenant": 2}
    assert stats["pending_age_groups"]["Today"] == 1
    assert stats["pending_age_groups"]["Older"] == 1
    assert stats["status_counts"]["rejected"] == 1


def test_report_endpoints_are_super_admin_only(client, seeded, make_admin):
    anonymous = client.get("/api/reactivation/requests")
    make_admin()
    client.post("/api/auth/login", json={"username": "admin@example.com", "password": STRONG_PASSWORD})
    admin_only = client.get("/api/reactivation/stats")
    client.post("/api/auth/login", json={"username": "super@example.com", "password": STRONG_PASSWORD})
    listed = client.get("/api/reactivation/requests", params={"status": "pending", "limit": 1})
    detail = client.get("/api/reactivation/requests/AAAA0003")
    missing = client.get("/api/reactivation/requests/ZZZZ9999")
    bad_limit = client.get("/api/reactivation/requests", params={"limit": 500})

    assert anonymous.status_code == 401
    assert admin_only.status_code == 403
    assert listed.status_code == 200
    assert listed.json()["pagination"]["total"] == 2
    assert len(listed.json()["requests"]) == 1
    assert detail.json()["data"]["status"] == "approved"
    assert missing.status_code == 404
    assert bad_limit.status_code == 400
