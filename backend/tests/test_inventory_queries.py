from datetime import date
from decimal import Decimal

import pytest

from pharmacy_pos.core.exceptions import InvalidQuantity, MedicineNotFound, ValidationError
from pharmacy_pos.services import inventory_service

TODAY = date(2026, 6, 15)


@pytest.fixture
def catalog(make_medicine):
    return {
        "expired": make_medicine(name="Old Syrup", stock=4, threshold=2, expiry_date=date(2026, 6, 1), category="Syrup"),
        "soon": make_medicine(name="Cough Drops", stock=0, threshold=5, expiry_date=date(2026, 7, 1), category="Lozenge"),
        "later": make_medicine(name="Vitamin C", stock=30, threshold=5, expiry_date=date(2027, 1, 1), category="Supplement", supplier="HealthCo"),
        "undated": make_medicine(name="Bandage", stock=5, threshold=5, supplier="MediSupply"),
    }


def _names(meds):
    return sorted(m.name for m in meds)


def test_low_and_out_of_stock(repo, catalog):
    assert _names(inventory_service.low_stock_medicines(repo)) == ["Bandage", "Cough Drops"]
    assert _names(inventory_service.out_of_stock_medicines(repo)) == ["Cough Drops"]


def test_low_stock_listed_emptiest_first(repo, catalog):
    assert inventory_service.low_stock_medicines(repo)[0].name == "Cough Drops"


def test_expired(repo, catalog):
    assert _names(inventory_service.expired_medicines(repo, today=TODAY)) == ["Old Syrup"]


def test_expiring_soon_includes_expired(repo, catalog):
    found = inventory_service.expiring_soon_medicines(repo, days=30, today=TODAY)
    assert [m.name for m in found] == ["Old Syrup", "Cough Drops"]


def test_expiring_soon_window_edges(repo, catalog):
    # 2026-07-01 is 16 days out; a 16 day window stops just short of it
    assert _names(inventory_service.expiring_soon_medicines(repo, days=16, today=TODAY)) == ["Old Syrup"]
    assert _names(inventory_service.expiring_soon_medicines(repo, days=17, today=TODAY)) == ["Cough Drops", "Old Syrup"]


def test_expiring_soon_rejects_negative_days(repo):
    with pytest.raises(ValidationError):
        inventory_service.expiring_soon_medicines(repo, days=-1)


def test_predicates_match_filters(catalog):
    assert catalog["expired"].is_expired(TODAY)
    assert not catalog["undated"].is_expired(TODAY)
    assert catalog["soon"].is_expiring_soon(30, TODAY)
    assert not catalog["later"].is_expiring_soon(30, TODAY)
    assert catalog["undated"].is_low_stock()
    assert catalog["soon"].is_out_of_stock()


def test_search(repo, catalog):
    assert _names(inventory_service.search_medicines(repo, "cough")) == ["Cough Drops"]
    assert _names(inventory_service.search_medicines(repo, "SUPPLE")) == ["Vitamin C"]
    assert _names(inventory_service.search_medicines(repo, catalog["undated"].id)) == ["Bandage"]
    assert len(inventory_service.search_medicines(repo)) == 4
    assert inventory_service.search_medicines(repo, "nothing like this") == []


def test_categories_and_suppliers(repo, catalog):
    assert inventory_service.categories(repo) == ["Lozenge", "Supplement", "Syrup"]
    assert inventory_service.suppliers(repo) == ["HealthCo", "MediSupply"]
    assert _names(inventory_service.medicines_by_category(repo, "Syrup")) == ["Old Syrup"]


def test_inventory_summary(repo, catalog):
    summary = inventory_service.inventory_summary(repo)
    assert summary["total_medicines"] == 4
    assert summary["low_stock_count"] == 2
    assert summary["out_of_stock_count"] == 1
    # 4 + 0 + 30 + 5 units at 10.00 each
    assert summary["total_inventory_value"] == Decimal("390.00")


# ---------------------------------------------------------------------------
# Catalog factory and updates
# ---------------------------------------------------------------------------

def test_created_ids_are_unique_and_prefixed(make_medicine):
    ids = {make_medicine(name=f"Med {i}").id for i in range(20)}
    assert len(ids) == 20
    assert all(i.startswith("MED-") for i in ids)


def test_price_is_stored_to_the_cent(make_medicine):
    assert make_medicine(price="12.345").price == Decimal("12.35")


@pytest.mark.parametrize(
    "kwargs, error",
    [
        ({"name": "  "}, ValidationError),
        ({"price": "-1.00"}, ValidationError),
        ({"stock": -1}, InvalidQuantity),
        ({"threshold": -5}, InvalidQuantity),
    ],
)
def test_create_rejects_bad_fields(make_medicine, kwargs, error):
    with pytest.raises(error):
        make_medicine(**kwargs)


def test_update_catalog_fields(repo, make_medicine):
    med = make_medicine(name="Ibuprofen", price="4.00")
    updated = inventory_service.update_medicine_details(repo, med.id, name=" Ibuprofen 400mg ", price="4.50", supplier="Acme")
    assert updated.name == "Ibuprofen 400mg"
    assert updated.price == Decimal("4.50")
    assert updated.supplier == "Acme"


def test_update_cannot_touch_stock(repo, make_medicine):
    med = make_medicine(stock=5)
    with pytest.raises(ValidationError):
        inventory_service.update_medicine_details(repo, med.id, stock=500)
    assert repo.current_stock(med.id) == 5


def test_raising_threshold_opens_alert(repo, make_medicine):
    med = make_medicine(stock=8, threshold=5)
    assert repo.open_alerts_for(med.id) == []
    inventory_service.update_medicine_details(repo, med.id, threshold=10)
    (alert,) = repo.open_alerts_for(med.id)
    assert alert.threshold == 10
    assert alert.priority == "LOW"


def test_update_unknown_medicine(repo):
    with pytest.raises(MedicineNotFound):
        inventory_service.update_medicine_details(repo, "MED-missing", name="x")
