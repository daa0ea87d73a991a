from decimal import Decimal

import pytest
from sqlalchemy import select

from backend.app.db.models.models_v1 import EnteredFood, Stock
from backend.services.inventory import apply_delta, quantities_by_food


def _stock_qty(client, headers, center_id, food_id):
    resp = client.get(f"/api/medical-centers/{center_id}/stock", headers=headers)
    assert resp.status_code == 200, resp.text
    rows = [r for r in resp.json() if r["food_id"] == food_id]
    return rows[0]["quantity"] if rows else None


def test_quantities_by_food_sums_repeated_lines():
    items = [
        EnteredFood(food_id=1, quantity=2),
        EnteredFood(food_id=2, quantity=5),
        EnteredFood(food_id=1, quantity=3.5),
    ]
    assert quantities_by_food(items) == {1: 5.5, 2: 5.0}


def test_create_entry_creates_stock_row(client, admin_headers, make):
    center = make.center()
    provider = make.provider()
    food = make.food()

    make.entry(center["id"], provider["id"], [(food["id"], 10)])

    assert _stock_qty(client, admin_headers, center["id"], food["id"]) == 10


def test_update_then_delete_entry_reconciles_stock(client, admin_headers, make):
    """
    GIVEN une entrée de 10 pour (centre, aliment)
    WHEN on la passe à 4 puis on la supprime
    THEN stock = 4 puis 0 (la ligne de stock reste)
    """
    center = make.center()
    provider = make.provider()
    food = make.food()
    entry = make.entry(center["id"], provider["id"], [(food["id"], 10)])

    resp = client.put(
        f"/api/food-entries/{entry['id']}",
        json={"entered_foods": [{"food_id": food["id"], "quantity": 4}]},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    assert _stock_qty(client, admin_headers, center["id"], food["id"]) == 4

    resp = client.delete(f"/api/food-entries/{entry['id']}", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert _stock_qty(client, admin_headers, center["id"], food["id"]) == 0


@pytest.mark.parametrize(
    "quantities",
    [
        [3, 7, 11],
        [1, 5],
        [2.5, 2.5, 2.5, 2.5],
    ],
)
def test_stock_equals_sum_of_live_entries(client, admin_headers, make, quantities):
    center = make.center()
    provider = make.provider()
    food = make.food()

    entries = [make.entry(center["id"], provider["id"], [(food["id"], q)]) for q in quantities]
    assert _stock_qty(client, admin_headers, center["id"], food["id"]) == pytest.approx(sum(quantities))

    # double chaque entrée, puis supprime la première
    for e, q in zip(entries, quantities):
        resp = client.put(
            f"/api/food-entries/{e['id']}",
            json={"entered_foods": [{"food_id": food["id"], "quantity": q * 2}]},
            headers=admin_headers,
        )
        assert resp.status_code == 200, resp.text
    client.delete(f"/api/food-entries/{entries[0]['id']}", headers=admin_headers)

    live = [q * 2 for q in quantities[1:]]
    assert _stock_qty(client, admin_headers, center["id"], food["id"]) == pytest.approx(sum(live))


def test_moving_entry_to_other_center_moves_stock(client, admin_headers, make):
    center_a = make.center("Center A")
    center_b = make.center("Center B")
    provider = make.provider()
    food = make.food()
    entry = make.entry(center_a["id"], provider["id"], [(food["id"], 6)])

    resp = client.put(
        f"/api/food-entries/{entry['id']}",
        json={"medical_center_id": center_b["id"]},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text

    assert _stock_qty(client, admin_headers, center_a["id"], food["id"]) == 0
    assert _stock_qty(client, admin_headers, center_b["id"], food["id"]) == 6


def test_negative_stock_is_rejected_and_rolled_back(client, admin_headers, make):
    center = make.center()
    provider = make.provider()
    food = make.food()
    entry = make.entry(center["id"], provider["id"], [(food["id"], 5)])

    # suppression manuelle de la ligne de stock : la suppression de l'entrée passerait à -5
    stock_id = client.get("/api/stock", headers=admin_headers).json()["data"][0]["id"]
    assert client.delete(f"/api/stock/{stock_id}", headers=admin_headers).status_code == 200

    resp = client.delete(f"/api/food-entries/{entry['id']}", headers=admin_headers)
    assert resp.status_code == 400
    assert "message" in resp.json()

    # rien n'a été écrit
    assert client.get(f"/api/food-entries/{entry['id']}", headers=admin_headers).status_code == 200
    assert _stock_qty(client, admin_headers, center["id"], food["id"]) is None


def test_create_entry_with_unknown_food_writes_nothing(client, admin_headers, make):
    center = make.center()
    provider = make.provider()

    resp = client.post(
        "/api/food-entries",
        json={
            "medical_center_id": center["id"],
            "provider_id": provider["id"],
            "entry_date": "2026-01-10",
            "entered_foods": [{"food_id": 999, "quantity": 3}],
        },
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert "999" in resp.json()["message"]
    assert client.get("/api/stock", headers=admin_headers).json()["total_items"] == 0


def test_apply_delta_creates_then_adds(db_session, make):
    center = make.center()
    food = make.food()

    apply_delta(db_session, center["id"], food["id"], 4)
    apply_delta(db_session, center["id"], food["id"], 1.5)
    db_session.commit()

    rows = db_session.execute(select(Stock)).scalars().all()
    assert len(rows) == 1
    assert rows[0].quantity == 5.5


def test_fractional_quantities_return_to_zero(client, admin_headers, make):
    """
    GIVEN deux entrées de 0.3 et 0.6 pour (centre, aliment)
    WHEN on les supprime l'une après l'autre
    THEN stock = 0.6 puis exactement 0 (aucun résidu d'arrondi)
    """
    center = make.center()
    provider = make.provider()
    food = make.food()
    first = make.entry(center["id"], provider["id"], [(food["id"], 0.3)])
    second = make.entry(center["id"], provider["id"], [(food["id"], 0.6)])
    assert _stock_qty(client, admin_headers, center["id"], food["id"]) == pytest.approx(0.9)

    assert client.delete(f"/api/food-entries/{first['id']}", headers=admin_headers).status_code == 200
    assert _stock_qty(client, admin_headers, center["id"], food["id"]) == 0.6

    resp = client.delete(f"/api/food-entries/{second['id']}", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert _stock_qty(client, admin_headers, center["id"], food["id"]) == 0


def test_apply_delta_keeps_exact_decimal_balance(db_session, make):
    center = make.center()
    food = make.food()

    for delta in (0.1, 0.2, -0.3):
        apply_delta(db_session, center["id"], food["id"], delta)
    db_session.commit()

    row = db_session.execute(select(Stock)).scalar_one()
    assert row.quantity == Decimal("0")


def test_entered_quantity_must_be_positive(client, admin_headers, make):
    center = make.center()
    provider = make.provider()
    food = make.food()

    resp = client.post(
        "/api/food-entries",
        json={
            "medical_center_id": center["id"],
            "provider_id": provider["id"],
            "entry_date": "2026-01-10",
            "entered_foods": [{"food_id": food["id"], "quantity": 0}],
        },
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert "quantity" in resp.json()["message"]
    assert client.get("/api/food-entries", headers=admin_headers).json()["total_items"] == 0
