import pytest
from fastapi.testclient import TestClient

from discount_admin.config import Settings
from discount_admin.main import create_app
from discount_admin.models import DiscountRule
from discount_admin.permissions import StaticPermissionGate
from discount_admin.store import InMemoryCatalog, InMemoryDiscountStore


@pytest.fixture
def store():
    return InMemoryDiscountStore([
        DiscountRule(name="Ten off", code="TEN", product_ids=frozenset({1})),
        DiscountRule(name="Free shipping", free_shipping=True),
    ])


@pytest.fixture
def client(store):
    app = create_app(
        settings=Settings(),
        store=store,
        products=InMemoryCatalog([(1, "Mug"), (2, "Shirt")]),
        product_types=InMemoryCatalog([(1, "Merch")]),
        user_groups=InMemoryCatalog([(1, "Wholesale")]),
    )
    return TestClient(app)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_permission_required(store):
    app = create_app(settings=Settings(), store=store, gate=StaticPermissionGate([]))
    r = TestClient(app).get("/discounts")
    assert r.status_code == 403
    assert "commerce-managePromotions" in r.json()["error"]


def test_index_lists_in_sort_order(client):
    r = client.get("/discounts")
    assert r.status_code == 200
    data = r.json()
    assert data["template"] == "commerce/promotions/discounts/index"
    assert [d["name"] for d in data["discounts"]] == ["Ten off", "Free shipping"]
    assert data["discounts"][1]["freeShipping"] is True


def test_edit_existing(client):
    r = client.get("/discounts/1")
    assert r.status_code == 200
    data = r.json()
    assert data["title"] == "Ten off"
    assert data["groups"] == {"1": "Wholesale"}
    assert data["types"] == {"1": "Merch"}
    assert data["products"] == [{"id": 1, "name": "Mug"}]


def test_edit_unknown_is_404(client):
    assert client.get("/discounts/99").status_code == 404


def test_new_with_preselected_products(client):
    r = client.get("/discounts/new", params={"productIds": "2|7"})
    assert r.status_code == 200
    data = r.json()
    assert data["title"] == "Create a Discount"
    assert data["discount"] is None
    assert data["products"] == [{"id": 2, "name": "Shirt"}]


def test_groups_hidden_without_pro_edition(store):
    app = create_app(
        settings=Settings(pro_edition=False),
        store=store,
        user_groups=InMemoryCatalog([(1, "Wholesale")]),
    )
    assert TestClient(app).get("/discounts/new").json()["groups"] == {}


def test_save_form(client, store):
    r = client.post("/discounts/save", data={
        "name": "Autumn",
        "baseDiscount": "5",
        "percentDiscount": "15%",
        "dateFrom[date]": "10/01/2026",
        "dateFrom[time]": "",
        "dateTo": "",
        "products[]": ["1", "2"],
        "groups": "",
    })
    assert r.status_code == 200, r.json()
    data = r.json()
    assert data["success"] is True
    rule = store.get_by_id(data["id"])
    assert rule.name == "Autumn"
    assert str(rule.base_discount) == "-5"
    assert str(rule.percent_discount) == "-0.15"
    assert rule.date_from.year == 2026
    assert rule.date_to is None
    assert rule.product_ids == frozenset({1, 2})
    assert rule.user_group_ids == frozenset()
    assert rule.sort_order == 3
    assert data["discount"]["percentDiscount"] == "-0.15"


def test_save_json_update(client, store):
    r = client.post("/discounts/save", json={"id": 2, "name": "Free shipping!", "freeShipping": True})
    assert r.status_code == 200
    assert store.get_by_id(2).name == "Free shipping!"


def test_save_validation_errors(client, store):
    r = client.post("/discounts/save", json={"name": "Bad", "baseDiscount": -5, "dateFrom": "soon"})
    assert r.status_code == 422
    data = r.json()
    assert data["error"] == "Couldn’t save discount."
    assert {(e["field"], e["issue"]) for e in data["errors"]} == {
        ("baseDiscount", "invalid_amount"),
        ("dateFrom", "invalid_date"),
    }
    assert len(store.get_all()) == 2


def test_save_unknown_id_is_404(client):
    r = client.post("/discounts/save", json={"id": 99, "name": "Ghost"})
    assert r.status_code == 404


def test_save_duplicate_code_is_store_error(client):
    r = client.post("/discounts/save", json={"name": "Copy", "code": "TEN"})
    assert r.status_code == 400
    assert "TEN" in r.json()["error"]


def test_reorder(client, store):
    r = client.post("/discounts/reorder", data={"ids": "[2, 1]"})
    assert r.json() == {"success": True}
    assert [d.id for d in store.get_all()] == [2, 1]


def test_reorder_failure(client):
    r = client.post("/discounts/reorder", json={"ids": [1, 99]})
    assert r.status_code == 200
    assert r.json() == {"error": "Couldn’t reorder discounts."}


def test_reorder_requires_ids(client):
    assert client.post("/discounts/reorder", json={}).status_code == 422


def test_delete(client, store):
    r = client.post("/discounts/delete", data={"id": "1"})
    assert r.json() == {"success": True}
    assert store.get_by_id(1) is None


def test_delete_requires_id(client):
    assert client.post("/discounts/delete", data={}).status_code == 422


def test_clear_coupon_usage_history(client, store):
    store.record_usage(1, user_id=3)
    r = client.post("/discounts/clear-coupon-usage-history", json={"id": 1})
    assert r.json() == {"success": True}
    assert store.usage_count(1) == 0


def test_save_huge_amount_is_validation_error(client, store):
    r = client.post("/discounts/save", data={
        "name": "Huge",
        "baseDiscount": "1e9999999",
        "percentDiscount": "1e9999999",
    })
    assert r.status_code == 422
    assert {(e["field"], e["issue"]) for e in r.json()["errors"]} == {
        ("baseDiscount", "invalid_amount"),
        ("percentDiscount", "percent_out_of_range"),
    }
    assert len(store.get_all()) == 2


@pytest.mark.parametrize("path,body", [
    ("/discounts/reorder", '{"ids": [1e999]}'),
    ("/discounts/delete", '{"id": 1e999}'),
    ("/discounts/clear-coupon-usage-history", '{"id": -1e999}'),
])
def test_overflowing_ids_are_rejected(client, path, body):
    r = client.post(path, content=body, headers={"content-type": "application/json"})
    assert r.status_code == 422
