import pytest

from discount_admin.errors import NotFoundError, StoreError
from discount_admin.models import DiscountRule
from discount_admin.store import InMemoryCatalog, InMemoryDiscountStore


def test_save_assigns_id_and_sort_order():
    store = InMemoryDiscountStore()
    first = store.save(DiscountRule(name="A"))
    second = store.save(DiscountRule(name="B"))
    assert (first, second) == (1, 2)
    assert [r.sort_order for r in store.get_all()] == [1, 2]


def test_update_keeps_sort_order():
    store = InMemoryDiscountStore([DiscountRule(name="A"), DiscountRule(name="B")])
    store.save(DiscountRule(id=1, name="A2"))
    rule = store.get_by_id(1)
    assert rule.name == "A2"
    assert rule.sort_order == 1


def test_save_unknown_id_is_not_found():
    store = InMemoryDiscountStore()
    with pytest.raises(NotFoundError):
        store.save(DiscountRule(id=42, name="ghost"))


def test_duplicate_coupon_code_is_rejected():
    store = InMemoryDiscountStore([DiscountRule(name="A", code="SAVE10")])
    with pytest.raises(StoreError):
        store.save(DiscountRule(name="B", code="save10"))
    # same rule keeps its own code
    store.save(DiscountRule(id=1, name="A", code="SAVE10"))


def test_reorder():
    store = InMemoryDiscountStore([DiscountRule(name=n) for n in "ABC"])
    assert store.reorder([3, 1, 2])
    assert [r.name for r in store.get_all()] == ["C", "A", "B"]


def test_reorder_with_unknown_id_changes_nothing():
    store = InMemoryDiscountStore([DiscountRule(name="A"), DiscountRule(name="B")])
    assert not store.reorder([2, 99])
    assert [r.name for r in store.get_all()] == ["A", "B"]


def test_delete():
    store = InMemoryDiscountStore([DiscountRule(name="A")])
    assert store.delete(1)
    assert store.get_by_id(1) is None
    assert not store.delete(1)


def test_clear_usage_history():
    store = InMemoryDiscountStore([DiscountRule(name="A", code="X")])
    store.record_usage(1, user_id=5)
    store.record_usage(1, email="a@example.com")
    assert store.usage_count(1) == 2
    store.clear_usage_history(1)
    assert store.usage_count(1) == 0
    with pytest.raises(NotFoundError):
        store.clear_usage_history(2)


def test_catalog():
    catalog = InMemoryCatalog([(2, "Shirt"), (1, "Mug")])
    assert catalog.list_all() == [(1, "Mug"), (2, "Shirt")]
    assert catalog.get_by_id(2) == (2, "Shirt")
    assert catalog.get_by_id(3) is None


def test_seed_with_persisted_ids():
    store = InMemoryDiscountStore([
        DiscountRule(id=10, name="A", sort_order=2),
        DiscountRule(id=4, name="B"),
    ])
    assert store.get_by_id(10).name == "A"
    assert store.get_by_id(4).sort_order == 3
    assert store.save(DiscountRule(name="C")) == 11
    assert [r.name for r in store.get_all()] == ["A", "B", "C"]
