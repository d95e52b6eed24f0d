from datetime import date, timedelta
from decimal import Decimal

import pytest

from models.log import Log
from models.price_update import PriceUpdate
from services.price_updates import PriceUpdateService, validate_discount
from services.products import ProductService
from utils.errors import BusinessError


@pytest.mark.parametrize("discount_type, value", [
    ("percentage", "120"),
    ("percentage", "-1"),
    ("fixed", "150"),
    ("bogus", "1"),
    ("fixed", None),
])
def test_invalid_discounts(discount_type, value):
    with pytest.raises(BusinessError) as exc:
        validate_discount(Decimal("100"), discount_type, Decimal(value) if value else None)
    assert exc.value.status_code == 422


def test_valid_discounts():
    validate_discount(Decimal("100"), "fixed", Decimal("100"))
    validate_discount(Decimal("100"), "percentage", Decimal("100"))
    validate_discount(Decimal("100"), "none", None)
    validate_discount(Decimal("100"), None, None)


def test_discount_dates_must_be_ordered():
    with pytest.raises(BusinessError):
        validate_discount(Decimal("100"), "percentage", Decimal("10"), date(2024, 5, 2), date(2024, 5, 1))


def test_bulk_update_reports_unknown_products(db, admin, make_product):
    product = make_product()

    result = PriceUpdateService(db).bulk_update([
        {"product_id": product.id, "regular_price": Decimal("120")},
        {"product_id": 9999, "regular_price": Decimal("5")},
    ], admin.id)

    assert result["updated"] == 1
    assert result["errors"] == [{"index": 1, "product_id": 9999, "error": "Product not found"}]
    assert result["results"][0]["new_selling_price"] == Decimal("120.00")
    assert result["results"][0]["changes"] == {"price": True, "stock": False, "discount": False}

    db.refresh(product)
    assert product.regular_price == Decimal("120.00")
    entry = db.query(PriceUpdate).filter(PriceUpdate.product_id == product.id).one()
    assert entry.old_regular_price == Decimal("100.00")
    assert entry.updated_by == admin.id
    assert db.query(Log).filter(Log.action == "PRICE_BULK_UPDATE").count() == 1


def test_bulk_update_sets_and_clears_discount(db, admin, make_product):
    product = make_product()
    service = PriceUpdateService(db)

    result = service.bulk_update([
        {"product_id": product.id, "discount_type": "percentage", "discount_value": Decimal("10")},
    ], admin.id)
    assert result["results"][0]["new_selling_price"] == Decimal("90.00")
    assert result["results"][0]["changes"]["discount"] is True

    result = service.bulk_update([{"product_id": product.id, "discount_type": "none"}], admin.id)
    assert result["results"][0]["new_selling_price"] == Decimal("100.00")

    db.refresh(product)
    assert product.active_discount is None
    assert [d.status for d in product.discounts] == ["inactive"]
    assert db.query(PriceUpdate).filter(PriceUpdate.product_id == product.id).count() == 2


def test_bulk_update_invalid_row_leaves_product_untouched(db, admin, make_product):
    product = make_product(regular_price=Decimal("50"))

    result = PriceUpdateService(db).bulk_update([
        {"product_id": product.id, "regular_price": Decimal("60"), "discount_type": "fixed",
         "discount_value": Decimal("70")},
    ], admin.id)

    assert result["updated"] == 0
    assert result["errors"][0]["error"] == "Fixed discount cannot exceed the regular price"
    db.refresh(product)
    assert product.regular_price == Decimal("50.00")


def test_bulk_price_cut_below_existing_fixed_discount_is_rejected(db, admin, make_product, make_discount):
    product = make_product(regular_price=Decimal("100"))
    make_discount(product, "fixed", "60")

    result = PriceUpdateService(db).bulk_update([{"product_id": product.id, "regular_price": Decimal("40")}], admin.id)

    assert result["updated"] == 0
    assert result["errors"][0]["error"] == "Fixed discount cannot exceed the regular price"
    db.refresh(product)
    assert product.regular_price == Decimal("100.00")
    assert db.query(PriceUpdate).count() == 0


def test_unchanged_row_writes_no_history(db, admin, make_product):
    product = make_product()

    result = PriceUpdateService(db).bulk_update([
        {"product_id": product.id, "regular_price": Decimal("100"), "stock_quantity": Decimal("50")},
    ], admin.id)

    assert result["results"][0]["updated"] is False
    assert db.query(PriceUpdate).count() == 0


def test_stock_change_is_recorded(db, admin, make_product):
    product = make_product()

    PriceUpdateService(db).bulk_update([{"product_id": product.id, "stock_quantity": Decimal("12.5")}], admin.id)

    entry = db.query(PriceUpdate).one()
    assert entry.old_stock_quantity == Decimal("50")
    assert entry.new_stock_quantity == Decimal("12.5")
    assert entry.price_change_percentage == 0.0


def test_product_create_records_initial_price(db, admin):
    product = ProductService(db).create({
        "name": "Carrot", "item_code": "car-1", "category_id": None,
        "regular_price": Decimal("8"), "stock_quantity": Decimal("20"), "stock_unit": "kgs",
        "discount_type": "percentage", "discount_value": Decimal("25"),
    }, admin.id)

    assert product.item_code == "CAR-1"
    assert product.stock_unit == "kg"
    assert product.selling_price == Decimal("6.00")

    entry = db.query(PriceUpdate).filter(PriceUpdate.product_id == product.id).one()
    assert entry.old_regular_price is None
    assert entry.new_selling_price == Decimal("6.00")
    assert entry.price_change_percentage is None


def test_product_price_change_keeps_fixed_discount_valid(db, admin, make_product, make_discount):
    product = make_product()
    make_discount(product, "fixed", "30")

    with pytest.raises(BusinessError):
        ProductService(db).update(product.id, {"regular_price": Decimal("20")}, admin.id)


def test_history_and_recent_endpoints(client, auth_headers, db, admin, make_product):
    product = make_product()
    PriceUpdateService(db).bulk_update([{"product_id": product.id, "regular_price": Decimal("110")}], admin.id)

    response = client.get(f"/api/v1/price-updates/product/{product.id}/history", headers=auth_headers)
    assert response.status_code == 200
    rows = response.json()["data"]
    assert len(rows) == 1
    assert rows[0]["price_change_percentage"] == 10.0
    assert rows[0]["product"]["id"] == product.id
    assert rows[0]["updater"]["email"] == admin.email

    response = client.get("/api/v1/price-updates/recent", headers=auth_headers)
    assert len(response.json()["data"]) == 1


def test_history_for_unknown_product(client, auth_headers):
    response = client.get("/api/v1/price-updates/product/999/history", headers=auth_headers)
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Product not found"}


def test_bulk_update_endpoint(client, auth_headers, make_product):
    product = make_product()

    response = client.post("/api/v1/price-updates/bulk-update", headers=auth_headers, json={
        "updates": [
            {"product_id": product.id, "regular_price": 80, "discount_type": "fixed", "discount_value": 5},
            {"product_id": 4242, "stock_quantity": 1},
        ],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "1 product(s) updated, 1 failed"
    assert body["data"]["results"][0]["new_selling_price"] == 75.0


def test_bulk_update_endpoint_validation(client, auth_headers, make_product):
    product = make_product()

    response = client.post("/api/v1/price-updates/bulk-update", headers=auth_headers, json={
        "updates": [{"product_id": product.id, "discount_type": "half-off"}],
    })
    assert response.status_code == 422
    assert response.json()["success"] is False

    response = client.post("/api/v1/price-updates/bulk-update", headers=auth_headers, json={"updates": []})
    assert response.status_code == 422


def test_by_date_range(client, auth_headers, db, admin, make_product):
    product = make_product()
    PriceUpdateService(db).bulk_update([{"product_id": product.id, "regular_price": Decimal("90")}], admin.id)
    today = date.today()

    response = client.get("/api/v1/price-updates/by-date-range", headers=auth_headers, params={
        "start_date": (today - timedelta(days=1)).isoformat(),
        "end_date": (today + timedelta(days=1)).isoformat(),
    })
    assert response.status_code == 200
    assert len(response.json()["data"]) == 1

    response = client.get("/api/v1/price-updates/by-date-range", headers=auth_headers, params={
        "start_date": "2024-05-10", "end_date": "2024-05-01",
    })
    assert response.status_code == 422
    assert "end_date" in response.json()["errors"]


def test_products_for_update_lists_active_products(client, auth_headers, make_product):
    active = make_product(name="Apple")
    make_product(name="Banana", status="inactive")

    response = client.get("/api/v1/price-updates/products", headers=auth_headers)

    assert [p["id"] for p in response.json()["data"]] == [active.id]
