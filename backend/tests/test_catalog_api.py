from datetime import date, timedelta
from decimal import Decimal

from models.category import Category
from models.log import Log
from models.users import User
from utils.hashing import get_password_hash
from utils.tokenJWT import create_access_token

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


# ---- auth ----

def test_protected_routes_need_a_token(client):
    assert client.get("/api/v1/products").status_code in (401, 403)

    response = client.get("/api/v1/products", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_first_registered_user_is_admin(client):
    first = client.post("/api/v1/register", json={"email": "Boss@Example.com", "password": "secret1", "name": "Boss"})

    assert first.status_code == 200
    assert first.json()["email"] == "boss@example.com"
    assert first.json()["role"] == "admin"

    token = client.post("/api/v1/login", json={"email": "boss@example.com", "password": "secret1"}).json()["access_token"]
    boss = {"Authorization": f"Bearer {token}"}
    second = client.post("/api/v1/register", headers=boss, json={"email": "clerk@example.com", "password": "secret1"})
    assert second.json()["role"] == "staff"

    duplicate = client.post("/api/v1/register", headers=boss, json={"email": "boss@example.com", "password": "secret1"})
    assert duplicate.status_code == 400


def test_strangers_cannot_register_once_an_admin_exists(client, db, admin, make_customer):
    make_customer()

    response = client.post("/api/v1/register", json={"email": "stranger@example.com", "password": "secret1"})
    assert response.status_code == 403
    assert db.query(User).filter(User.email == "stranger@example.com").first() is None

    login = client.post("/api/v1/login", json={"email": "stranger@example.com", "password": "secret1"})
    assert login.status_code == 401

    staff = User(email="staff@example.com", password_hash=get_password_hash("secret123"), role="staff")
    db.add(staff)
    db.commit()
    token = create_access_token({"sub": staff.email})
    response = client.post("/api/v1/register", headers={"Authorization": f"Bearer {token}"},
                           json={"email": "stranger@example.com", "password": "secret1"})
    assert response.status_code == 403


def test_login_and_me(client, admin):
    response = client.post("/api/v1/login", json={"email": "ADMIN@example.com", "password": "secret123"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/api/v1/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == admin.email
    assert me.json()["role"] == "admin"

    wrong = client.post("/api/v1/login", json={"email": admin.email, "password": "nope"})
    assert wrong.status_code == 401


def test_logs_are_admin_only(client, db, auth_headers):
    client.post("/api/v1/categories", headers=auth_headers, data={"name": "Fruits"})

    response = client.get("/api/v1/logs", headers=auth_headers, params={"action": "CATEGORY"})
    assert response.status_code == 200
    assert [item["action"] for item in response.json()["items"]] == ["CATEGORY_CREATE"]

    staff = User(email="staff@example.com", password_hash=get_password_hash("secret123"), role="staff")
    db.add(staff)
    db.commit()
    token = create_access_token({"sub": staff.email})
    response = client.get("/api/v1/logs", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403

    response = client.get("/api/v1/logs", headers=auth_headers, params={"date_from": "yesterday"})
    assert response.status_code == 422


# ---- categories ----

def test_category_create_and_duplicate_name(client, auth_headers):
    response = client.post("/api/v1/categories", headers=auth_headers, data={"name": " Vegetables ", "sort_order": "2"})
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["name"] == "Vegetables"
    assert body["data"]["products_count"] == 0

    duplicate = client.post("/api/v1/categories", headers=auth_headers, data={"name": "vegetables"})
    assert duplicate.status_code == 422
    assert duplicate.json()["errors"]["name"] == ["The name has already been taken"]


def test_category_image_upload(client, auth_headers, storage):
    response = client.post(
        "/api/v1/categories", headers=auth_headers, data={"name": "Dairy"},
        files={"image": ("milk.png", PNG_BYTES, "image/png")},
    )
    assert response.status_code == 201
    image = response.json()["data"]["image"]
    assert image.startswith("/uploads/categories/") and image.endswith(".png")
    assert (storage / image.lstrip("/")).exists()

    invalid = client.post(
        "/api/v1/categories", headers=auth_headers, data={"name": "Bakery"},
        files={"image": ("notes.txt", b"hello", "text/plain")},
    )
    assert invalid.status_code == 422
    assert "image" in invalid.json()["errors"]


def test_category_update_toggle_and_delete(client, auth_headers, make_category, make_product):
    category = make_category("Herbs")
    make_product(category_id=category.id)

    response = client.patch(f"/api/v1/categories/{category.id}", headers=auth_headers, data={"description": "Fresh"})
    assert response.json()["data"]["description"] == "Fresh"
    assert response.json()["data"]["products_count"] == 1

    response = client.post(f"/api/v1/categories/{category.id}/toggle-status", headers=auth_headers)
    assert response.json()["data"]["status"] == "inactive"
    assert response.json()["message"] == "Category deactivated successfully"

    response = client.delete(f"/api/v1/categories/{category.id}", headers=auth_headers)
    assert response.status_code == 422
    assert "1 products" in response.json()["errors"]["category_id"][0]

    empty = make_category("Empty")
    assert client.delete(f"/api/v1/categories/{empty.id}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/v1/categories/{empty.id}", headers=auth_headers).status_code == 404


def test_category_tree_search_and_reorder(client, auth_headers, db, make_category):
    parent = make_category("Fruits")
    child = make_category("Citrus", parent_id=parent.id)
    make_category("Vegetables")

    tree = client.get("/api/v1/categories/tree", headers=auth_headers).json()["data"]
    fruits = next(node for node in tree if node["id"] == parent.id)
    assert [c["id"] for c in fruits["children"]] == [child.id]
    assert all(node["id"] != child.id for node in tree)

    found = client.get("/api/v1/categories/search", headers=auth_headers, params={"q": "citr"}).json()["data"]
    assert [c["name"] for c in found] == ["Citrus"]

    response = client.post("/api/v1/categories/reorder", headers=auth_headers, json={
        "categories": [{"id": child.id}, {"id": parent.id, "sort_order": 7}],
    })
    assert response.status_code == 200
    db.expire_all()
    assert db.get(Category, child.id).sort_order == 0
    assert db.get(Category, parent.id).sort_order == 7


def test_category_self_parent_is_rejected(client, auth_headers, make_category):
    category = make_category("Snacks")
    response = client.patch(f"/api/v1/categories/{category.id}", headers=auth_headers, data={"parent_id": str(category.id)})
    assert response.status_code == 422


# ---- products ----

def product_form(**overrides):
    data = {"name": "Tomato", "item_code": " tom-01 ", "regular_price": "100", "stock_quantity": "20", "stock_unit": "kg"}
    data.update(overrides)
    return data


def test_product_create_normalises_item_code(client, auth_headers, make_category):
    category = make_category("Vegetables")
    response = client.post("/api/v1/products", headers=auth_headers, data=product_form(category_id=str(category.id)))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["item_code"] == "TOM-01"
    assert data["category"] == {"id": category.id, "name": "Vegetables"}
    assert data["selling_price"] == 100.0
    assert data["has_discount"] is False

    duplicate = client.post("/api/v1/products", headers=auth_headers, data=product_form(name="Other", item_code="TOM-01"))
    assert duplicate.status_code == 422
    assert duplicate.json()["errors"]["item_code"] == ["The item code has already been taken"]


def test_product_with_discount(client, auth_headers):
    response = client.post("/api/v1/products", headers=auth_headers, data=product_form(
        discount_type="percentage", discount_value="10",
    ))

    data = response.json()["data"]
    assert data["selling_price"] == 90.0
    assert data["has_discount"] is True
    assert data["discount_percentage"] == 10.0
    assert data["active_discount"]["discount_type"] == "percentage"


def test_future_discount_is_not_active_yet(client, auth_headers):
    start = date.today() + timedelta(days=3)
    response = client.post("/api/v1/products", headers=auth_headers, data=product_form(
        discount_type="fixed", discount_value="10", discount_start_date=start.isoformat(),
    ))

    data = response.json()["data"]
    assert data["selling_price"] == 100.0
    assert data["has_discount"] is False


def test_fixed_discount_above_price_is_rejected(client, auth_headers):
    response = client.post("/api/v1/products", headers=auth_headers, data=product_form(
        discount_type="fixed", discount_value="150",
    ))
    assert response.status_code == 422
    assert "discount_value" in response.json()["errors"]


def test_product_validation(client, auth_headers):
    response = client.post("/api/v1/products", headers=auth_headers, data=product_form(regular_price="-1"))
    assert response.status_code == 422
    assert "regular_price" in response.json()["errors"]

    response = client.post("/api/v1/products", headers=auth_headers, data=product_form(stock_unit="bushel"))
    assert response.status_code == 422

    response = client.post("/api/v1/products", headers=auth_headers, data=product_form(
        min_order_quantity="5", max_order_quantity="2",
    ))
    assert response.status_code == 422
    assert "max_order_quantity" in response.json()["errors"]


def test_product_update_and_discount_change(client, auth_headers, db, make_product):
    product = make_product()

    response = client.patch(f"/api/v1/products/{product.id}", headers=auth_headers, data={
        "regular_price": "80", "discount_type": "fixed", "discount_value": "20",
    })
    data = response.json()["data"]
    assert data["regular_price"] == 80.0
    assert data["selling_price"] == 60.0
    assert data["discount_percentage"] == 25.0

    response = client.patch(f"/api/v1/products/{product.id}", headers=auth_headers, data={"discount_type": "none"})
    assert response.json()["data"]["selling_price"] == 80.0


def test_product_toggle_delete_and_variations(client, auth_headers, make_product):
    product = make_product()

    response = client.post(f"/api/v1/products/{product.id}/toggle-status", headers=auth_headers)
    assert response.json()["data"]["status"] == "inactive"

    response = client.post(f"/api/v1/products/{product.id}/variations", headers=auth_headers, json={
        "quantity": 1500, "unit": "gm", "price": 12, "stock_quantity": 3, "sku": "TOM-1500",
    })
    assert response.status_code == 201
    assert response.json()["data"]["display_name"] == "1.50 kg"

    duplicate = client.post(f"/api/v1/products/{product.id}/variations", headers=auth_headers, json={
        "quantity": 500, "unit": "gm", "price": 5, "sku": "TOM-1500",
    })
    assert duplicate.status_code == 422

    listed = client.get(f"/api/v1/products/{product.id}/variations", headers=auth_headers).json()["data"]
    assert [v["in_stock"] for v in listed] == [True]

    assert client.delete(f"/api/v1/products/{product.id}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/v1/products/{product.id}", headers=auth_headers).status_code == 404


def test_product_filters(client, auth_headers, make_product, make_discount):
    discounted = make_product(name="Apple", item_code="APL-1")
    make_discount(discounted)
    empty = make_product(name="Banana", stock_quantity=Decimal("0"), product_type="daily")
    low = make_product(name="Cherry", stock_quantity=Decimal("4"))

    def ids(**params):
        response = client.get("/api/v1/products", headers=auth_headers, params=params)
        return [p["id"] for p in response.json()["data"]]

    assert ids(has_discount="true") == [discounted.id]
    assert ids(stock_status="out_of_stock") == [empty.id]
    assert ids(stock_status="low_stock") == [low.id]
    assert ids(product_type="daily") == [empty.id]
    assert ids(search="apl") == [discounted.id]
    assert ids(sort_by="name", order="desc") == [low.id, empty.id, discounted.id]

    page = client.get("/api/v1/products", headers=auth_headers, params={"per_page": 2, "page": 2}).json()
    assert page["meta"] == {"current_page": 2, "per_page": 2, "total": 3, "last_page": 2}
    assert len(page["data"]) == 1


def test_category_products(client, auth_headers, make_category, make_product):
    category = make_category("Greens")
    inside = make_product(category_id=category.id)
    make_product()

    response = client.get(f"/api/v1/categories/{category.id}/products", headers=auth_headers)
    assert [p["id"] for p in response.json()["data"]] == [inside.id]


# ---- customers ----

def test_customer_number_is_normalised(client, auth_headers):
    response = client.post("/api/v1/customers", headers=auth_headers, json={
        "name": "Ali", "whatsapp_number": "050 123 4567", "area": "Deira",
    })
    assert response.status_code == 201
    assert response.json()["data"]["whatsapp_number"] == "+971501234567"
    assert response.json()["data"]["active"] is True

    duplicate = client.post("/api/v1/customers", headers=auth_headers, json={
        "name": "Other", "whatsapp_number": "0501234567",
    })
    assert duplicate.status_code == 422
    assert "whatsapp_number" in duplicate.json()["errors"]


def test_customer_invalid_number(client, auth_headers):
    response = client.post("/api/v1/customers", headers=auth_headers, json={"name": "Sam", "whatsapp_number": "abc"})
    assert response.status_code == 422
    assert response.json()["message"] == "Invalid WhatsApp number"


def test_customer_update_toggle_delete(client, auth_headers, db, make_customer):
    customer = make_customer(name="Fatima")

    response = client.patch(f"/api/v1/customers/{customer.id}", headers=auth_headers, json={"remarks": "Prefers mornings"})
    assert response.json()["data"]["remarks"] == "Prefers mornings"
    assert response.json()["data"]["name"] == "Fatima"

    response = client.post(f"/api/v1/customers/{customer.id}/toggle-status", headers=auth_headers)
    assert response.json()["data"]["active"] is False

    listed = client.get("/api/v1/customers", headers=auth_headers, params={"active": "false"}).json()
    assert [c["id"] for c in listed["data"]] == [customer.id]

    assert client.delete(f"/api/v1/customers/{customer.id}", headers=auth_headers).status_code == 200
    actions = {log.action for log in db.query(Log).all()}
    assert {"CUSTOMER_UPDATE", "CUSTOMER_TOGGLE", "CUSTOMER_DELETE"} <= actions
