import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import PRODUCTS, USERS, Database
from main import create_app
from schemas import Product, User
from security import hash_password

ADMIN_EMAIL = "admin@gebeya.com"
ADMIN_PASSWORD = "Admin123"
PASSWORD = "Secret123"


@pytest.fixture
def database():
    db = Database(client=mongomock.MongoClient(), name="gebeya_test")
    db.open()
    yield db
    db.close()


@pytest.fixture
def settings():
    return Settings({
        "JWT_SECRET": "test-secret",
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
    })


@pytest.fixture
def client(database, settings):
    app = create_app(database=database, settings=settings)
    with TestClient(app) as c:
        yield c


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register(client):
    def _register(name, email, role="customer", **extra):
        r = client.post("/api/auth/register", json={
            "name": name, "email": email, "password": PASSWORD, "role": role, **extra,
        })
        assert r.status_code == 201, r.json()
        data = r.json()["data"]
        return data["user"]["id"], data["token"]
    return _register


@pytest.fixture
def admin_token(client):
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200, r.json()
    return r.json()["data"]["token"]


@pytest.fixture
def create_product(client):
    def _create(token, **fields):
        payload = {
            "name": "Rice",
            "description": "Long grain white rice from Fogera",
            "category": "grains",
            "price": 500,
            "unit": "kg",
            "minimum_order": 10,
            "available_quantity": 100,
        }
        payload.update(fields)
        r = client.post("/api/products", json=payload, headers=auth(token))
        assert r.status_code == 201, r.json()
        return r.json()["data"]["product"]["id"]
    return _create


# Direct store seeding for workflow tests that skip the HTTP layer.

def make_user(database, name, role="customer"):
    uid = database.create_document(USERS, User(
        name=name,
        email=f"{name.lower()}@example.com",
        password_hash=hash_password(PASSWORD),
        role=role,
    ))
    return database.get_document(USERS, uid)


def make_product(database, wholesaler, **fields):
    values = {
        "name": "Teff",
        "description": "Magna white teff, cleaned",
        "category": "grains",
        "price": 120.0,
        "unit": "kg",
        "minimum_order": 1,
        "available_quantity": 50,
    }
    values.update(fields)
    pid = database.create_document(PRODUCTS, Product(**values, wholesaler=wholesaler["_id"]))
    return database.get_document(PRODUCTS, pid)
