import itertools
import os
import tempfile
from datetime import date
from decimal import Decimal

# Settings are read once at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_DIR"] = tempfile.mkdtemp(prefix="grocery-tests-")
os.environ["SECRET_KEY"] = "test-secret"
os.environ["APP_URL"] = "http://testserver"
os.environ["WHATSAPP_RETRY_DELAY_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import database
from config import settings
from database import Base, get_db
from main import app
from models.category import Category
from models.customer import Customer
from models.product import Product, ProductDiscount
from models.users import User
from utils.geoapify_client import get_geoapify_client
from utils.hashing import get_password_hash
from utils.tokenJWT import create_access_token
from utils.whatsapp_client import WhatsAppError, friendly_error, get_whatsapp_client


class FakeWhatsAppClient:
    """Records sends; numbers in `failing` get a Twilio 21211 error."""

    def __init__(self):
        self.sent = []
        self.failing = set()

    def send(self, to, body=None, media_url=None, template_id=None, content_variables=None):
        if to in self.failing:
            raise WhatsAppError(21211, friendly_error(21211))
        self.sent.append({
            "to": to, "body": body, "media_url": media_url,
            "template_id": template_id, "content_variables": content_variables,
        })
        return {"sid": f"SM{len(self.sent):06d}", "status": "queued"}


class FakeGeoapifyClient:
    def __init__(self, features=None, error=None):
        self.features = features or []
        self.error = error
        self.queries = []

    def autocomplete(self, query, limit=20, country_filter="countrycode:ae"):
        self.queries.append(query)
        if self.error:
            raise self.error
        return self.features


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine, monkeypatch):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    # Background jobs open their own session through database.SessionLocal
    monkeypatch.setattr(database, "SessionLocal", TestingSession)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def storage(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture
def whatsapp():
    return FakeWhatsAppClient()


@pytest.fixture
def geoapify():
    return FakeGeoapifyClient()


@pytest.fixture
def client(db, whatsapp, geoapify):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_whatsapp_client] = lambda: whatsapp
    app.dependency_overrides[get_geoapify_client] = lambda: geoapify
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db):
    user = User(email="admin@example.com", password_hash=get_password_hash("secret123"), role="admin", name="Admin")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(admin):
    token = create_access_token({"sub": admin.email, "role": admin.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_category(db):
    counter = itertools.count(1)

    def _make(name=None, **kwargs):
        category = Category(name=name or f"Category {next(counter)}", status=kwargs.pop("status", "active"), **kwargs)
        db.add(category)
        db.commit()
        db.refresh(category)
        return category

    return _make


@pytest.fixture
def make_product(db):
    counter = itertools.count(1)

    def _make(**kwargs):
        n = next(counter)
        data = {
            "name": f"Product {n}",
            "item_code": f"ITEM-{n:03d}",
            "regular_price": Decimal("100.00"),
            "stock_quantity": Decimal("50"),
            "stock_unit": "kg",
            "product_type": "standard",
            "status": "active",
        }
        data.update(kwargs)
        product = Product(**data)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_discount(db):
    def _make(product, discount_type="percentage", value="10", start_date=None, end_date=None, status="active"):
        discount = ProductDiscount(
            product_id=product.id, discount_type=discount_type, discount_value=Decimal(value),
            start_date=start_date, end_date=end_date, status=status,
        )
        db.add(discount)
        db.commit()
        db.refresh(product)
        return discount

    return _make


@pytest.fixture
def make_customer(db):
    counter = itertools.count(1)

    def _make(name=None, whatsapp_number=None, active=True, **kwargs):
        n = next(counter)
        customer = Customer(
            name=name or f"Customer {n}",
            whatsapp_number=whatsapp_number or f"+97150{n:07d}",
            active=active,
            **kwargs,
        )
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer

    return _make


@pytest.fixture
def today():
    return date.today()
