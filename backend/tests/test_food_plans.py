from datetime import date, timedelta

import pytest

from backend.app.core.errors import ModelValidationError
from backend.app.db.models.core_types import PlanType
from backend.app.db.models.models_v1 import FoodPlan, MedicalCenter
from backend.services.food_plans import completion_percentage, period_window


def _plan_payload(center_id, food_id, provider_id, quantity=100, **extra):
    payload = {
        "name": "Week 1",
        "medical_center_id": center_id,
        "type": "weekly",
        "start_date": "2026-01-05",
        "end_date": "2026-01-11",
        "planned_foods": [{"food_id": food_id, "provider_id": provider_id, "quantity": quantity}],
    }
    payload.update(extra)
    return payload


@pytest.fixture
def refs(make):
    return {"center": make.center(), "provider": make.provider(), "food": make.food()}


def test_completion_percentage_rounding():
    assert completion_percentage(100, 0) == 0.0
    assert completion_percentage(100, 150) == 150.0
    assert completion_percentage(3, 1) == 33.33
    assert completion_percentage(0, 10) == 0.0


def test_period_window():
    today = date(2026, 3, 31)
    assert period_window("lastWeek", today) == (date(2026, 3, 24), today)
    assert period_window("lastMonth", today) == (date(2026, 2, 28), today)
    assert period_window("lastYear", today) == (date(2025, 3, 31), today)
    assert period_window("all", today) is None
    assert period_window(None, today) is None


def test_plan_completion_from_linked_entries(client, admin_headers, make, refs):
    center, provider, food = refs["center"], refs["provider"], refs["food"]
    resp = client.post("/api/food-plans", json=_plan_payload(center["id"], food["id"], provider["id"]), headers=admin_headers)
    assert resp.status_code == 201, resp.text
    plan = resp.json()
    assert plan["total_planned_quantity"] == 100
    assert plan["real_quantity"] == 0
    assert plan["percentage_completed"] == 0

    make.entry(center["id"], provider["id"], [(food["id"], 90)], food_plan_id=plan["id"])
    make.entry(center["id"], provider["id"], [(food["id"], 60)], food_plan_id=plan["id"])
    # entrée non liée : ne compte pas
    make.entry(center["id"], provider["id"], [(food["id"], 1000)])

    body = client.get(f"/api/food-plans/{plan['id']}", headers=admin_headers).json()
    assert body["real_quantity"] == 150
    assert body["percentage_completed"] == 150.0

    rvp = client.get(f"/api/food-plans/{plan['id']}/real-vs-planned", headers=admin_headers).json()
    assert rvp["total_real_quantity"] == 150
    assert rvp["foods"] == [
        {"food_id": food["id"], "planned_quantity": 100.0, "real_quantity": 150.0, "percentage_completed": 150.0}
    ]


def test_plan_end_date_must_follow_start_date(client, admin_headers, refs):
    payload = _plan_payload(
        refs["center"]["id"], refs["food"]["id"], refs["provider"]["id"], start_date="2026-02-01", end_date="2026-02-01"
    )
    resp = client.post("/api/food-plans", json=payload, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "End date must be after start date"


def test_plan_dates_checked_at_save_time(db_session, refs):
    plan = FoodPlan(
        name="Bad",
        medical_center_id=refs["center"]["id"],
        type=PlanType.weekly,
        start_date=date(2026, 5, 10),
        end_date=date(2026, 5, 1),
    )
    db_session.add(plan)
    with pytest.raises(ModelValidationError):
        db_session.flush()
    db_session.rollback()


def test_medical_center_requires_contact_at_save_time(db_session):
    db_session.add(MedicalCenter(name="No contact", address="Somewhere"))
    with pytest.raises(ModelValidationError):
        db_session.flush()
    db_session.rollback()


def test_monthly_plan_requires_weekly_children(client, admin_headers, refs):
    center, provider, food = refs["center"], refs["provider"], refs["food"]
    base = dict(type="monthly", name="January", start_date="2026-01-01", end_date="2026-01-31")

    resp = client.post("/api/food-plans", json=_plan_payload(center["id"], food["id"], provider["id"], **base), headers=admin_headers)
    assert resp.status_code == 400

    weekly = client.post(
        "/api/food-plans", json=_plan_payload(center["id"], food["id"], provider["id"]), headers=admin_headers
    ).json()

    # un plan mensuel ne peut pas servir de sous-plan d'un autre mensuel
    monthly = client.post(
        "/api/food-plans",
        json=_plan_payload(center["id"], food["id"], provider["id"], weekly_plans=[weekly["id"]], **base),
        headers=admin_headers,
    )
    assert monthly.status_code == 201, monthly.text
    assert [p["id"] for p in monthly.json()["weekly_plans"]] == [weekly["id"]]

    bad = client.post(
        "/api/food-plans",
        json=_plan_payload(center["id"], food["id"], provider["id"], weekly_plans=[monthly.json()["id"]], **base),
        headers=admin_headers,
    )
    assert bad.status_code == 404


def test_plan_with_unknown_center_is_404(client, admin_headers, refs):
    payload = _plan_payload(999, refs["food"]["id"], refs["provider"]["id"])
    resp = client.post("/api/food-plans", json=payload, headers=admin_headers)
    assert resp.status_code == 404


def test_plan_list_filters(client, admin_headers, make, refs):
    center, provider, food = refs["center"], refs["provider"], refs["food"]
    other_food = make.food("Beans")
    client.post("/api/food-plans", json=_plan_payload(center["id"], food["id"], provider["id"]), headers=admin_headers)
    client.post(
        "/api/food-plans",
        json=_plan_payload(center["id"], other_food["id"], provider["id"], name="Beans week"),
        headers=admin_headers,
    )

    by_food = client.get(f"/api/food-plans?food_id={other_food['id']}", headers=admin_headers).json()
    assert by_food["total_items"] == 1
    assert by_food["data"][0]["name"] == "Beans week"

    by_search = client.get("/api/food-plans?search=week", headers=admin_headers).json()
    assert by_search["total_items"] == 2


def test_deleting_plan_removes_entries_and_reverses_stock(client, admin_headers, make, refs):
    center, provider, food = refs["center"], refs["provider"], refs["food"]
    plan = client.post(
        "/api/food-plans", json=_plan_payload(center["id"], food["id"], provider["id"]), headers=admin_headers
    ).json()
    make.entry(center["id"], provider["id"], [(food["id"], 8)], food_plan_id=plan["id"])
    make.entry(center["id"], provider["id"], [(food["id"], 2)], food_plan_id=plan["id"])
    make.entry(center["id"], provider["id"], [(food["id"], 5)])

    resp = client.delete(f"/api/food-plans/{plan['id']}", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["entries_deleted"] == 2

    entries = client.get("/api/food-entries", headers=admin_headers).json()
    assert entries["total_items"] == 1
    stock = client.get(f"/api/medical-centers/{center['id']}/stock", headers=admin_headers).json()
    assert stock[0]["quantity"] == 5


def _monthly_with_weekly(client, headers, refs, weekly_count=1):
    center, provider, food = refs["center"], refs["provider"], refs["food"]
    weekly_ids = [
        client.post(
            "/api/food-plans",
            json=_plan_payload(center["id"], food["id"], provider["id"], name=f"Week {i}"),
            headers=headers,
        ).json()["id"]
        for i in range(weekly_count)
    ]
    monthly = client.post(
        "/api/food-plans",
        json=_plan_payload(
            center["id"],
            food["id"],
            provider["id"],
            name="January",
            type="monthly",
            start_date="2026-01-01",
            end_date="2026-01-31",
            weekly_plans=weekly_ids[:1],
        ),
        headers=headers,
    )
    assert monthly.status_code == 201, monthly.text
    return monthly.json(), weekly_ids


def test_update_replaces_planned_foods(client, admin_headers, make, refs):
    center, provider, food = refs["center"], refs["provider"], refs["food"]
    beans = make.food("Beans")
    plan = client.post(
        "/api/food-plans", json=_plan_payload(center["id"], food["id"], provider["id"]), headers=admin_headers
    ).json()

    resp = client.put(
        f"/api/food-plans/{plan['id']}",
        json={"planned_foods": [{"food_id": beans["id"], "provider_id": provider["id"], "quantity": 40}]},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["total_planned_quantity"] == 40
    assert [item["food"]["id"] for item in body["planned_foods"]] == [beans["id"]]


def test_update_rejects_end_date_before_start_date(client, admin_headers, refs):
    plan = client.post(
        "/api/food-plans",
        json=_plan_payload(refs["center"]["id"], refs["food"]["id"], refs["provider"]["id"]),
        headers=admin_headers,
    ).json()

    resp = client.put(f"/api/food-plans/{plan['id']}", json={"end_date": "2026-01-01"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "End date must be after start date"

    # inchangé
    assert client.get(f"/api/food-plans/{plan['id']}", headers=admin_headers).json()["end_date"] == "2026-01-11"


def test_update_replaces_child_plans(client, admin_headers, refs):
    monthly, weekly_ids = _monthly_with_weekly(client, admin_headers, refs, weekly_count=2)

    resp = client.put(
        f"/api/food-plans/{monthly['id']}", json={"weekly_plans": [weekly_ids[1]]}, headers=admin_headers
    )
    assert resp.status_code == 200, resp.text
    assert [p["id"] for p in resp.json()["weekly_plans"]] == [weekly_ids[1]]


def test_type_change_drops_children_of_wrong_type(client, admin_headers, refs):
    monthly, _ = _monthly_with_weekly(client, admin_headers, refs)

    resp = client.put(f"/api/food-plans/{monthly['id']}", json={"type": "annual"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["type"] == "annual"
    assert body["monthly_plans"] == []
    assert body["weekly_plans"] == []


def test_type_change_to_weekly_clears_children(client, admin_headers, refs):
    monthly, _ = _monthly_with_weekly(client, admin_headers, refs)

    resp = client.put(f"/api/food-plans/{monthly['id']}", json={"type": "weekly"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["weekly_plans"] == []

    # le plan redevenu mensuel ne retrouve pas ses anciens sous-plans
    again = client.put(f"/api/food-plans/{monthly['id']}", json={"type": "monthly"}, headers=admin_headers)
    assert again.json()["weekly_plans"] == []


def test_period_filter_matches_overlapping_plans(client, admin_headers, refs):
    center, provider, food = refs["center"], refs["provider"], refs["food"]
    today = date.today()
    current = _plan_payload(
        center["id"],
        food["id"],
        provider["id"],
        name="Current week",
        start_date=(today - timedelta(days=3)).isoformat(),
        end_date=(today + timedelta(days=3)).isoformat(),
    )
    old = _plan_payload(
        center["id"], food["id"], provider["id"], name="Old week", start_date="2020-01-06", end_date="2020-01-12"
    )
    for payload in (current, old):
        assert client.post("/api/food-plans", json=payload, headers=admin_headers).status_code == 201

    last_week = client.get("/api/food-plans?period=lastWeek", headers=admin_headers).json()
    assert [p["name"] for p in last_week["data"]] == ["Current week"]

    everything = client.get("/api/food-plans?period=all", headers=admin_headers).json()
    assert everything["total_items"] == 2
