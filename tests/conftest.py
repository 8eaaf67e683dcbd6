import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("JWT_SECRET", "pytest-signing-secret")

import mongomock
import pytest
from fastapi.testclient import TestClient

import auth
import database
import main

ADMIN_EMAIL = "admin@boutique.com"
ADMIN_PASSWORD = "AdminPassword123"

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def mongo(monkeypatch):
    mdb = mongomock.MongoClient()["boutique_test"]
    mdb["adminuser"].create_index("email", unique=True)
    mdb["category"].create_index("name", unique=True)
    mdb["category"].create_index("slug", unique=True)
    monkeypatch.setattr(database, "db", mdb)
    return mdb


@pytest.fixture
def client(mongo):
    # no context manager: the lifespan hook needs a real server
    return TestClient(main.app)


@pytest.fixture
def admin(mongo):
    admin_id = auth.create_admin(ADMIN_EMAIL, ADMIN_PASSWORD, "Admin User")
    return {"id": admin_id, "email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}


@pytest.fixture
def admin_headers(admin):
    token = auth.tokens.issue(admin["id"], admin["email"])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_category(mongo):
    def _make(name="Dresses", slug=None, description="Elegant dresses for all seasons"):
        doc = {
            "name": name,
            "slug": slug or name.lower().replace(" ", "-"),
            "description": description,
            "createdAt": BASE_TIME,
            "updatedAt": BASE_TIME,
        }
        doc["_id"] = mongo["category"].insert_one(doc).inserted_id
        return doc
    return _make


@pytest.fixture
def make_product(mongo, make_category):
    counter = {"n": 0}
    default_category = {}

    def _make(**overrides):
        if "category" not in overrides:
            if not default_category:
                default_category.update(make_category(name="Default Category", slug="default-category"))
            overrides["category"] = default_category["_id"]
        counter["n"] += 1
        created = BASE_TIME + timedelta(minutes=counter["n"])
        doc = {
            "name": f"Product {counter['n']}",
            "description": "A lovely boutique product",
            "price": 1000.0,
            "images": ["https://img.example.com/p.jpg"],
            "sizes": ["S", "M"],
            "colors": ["red"],
            "tags": ["cotton"],
            "isFeatured": False,
            "isNewArrival": False,
            "isActive": True,
            "stock": 5,
            "createdAt": created,
            "updatedAt": created,
        }
        doc.update(overrides)
        doc["_id"] = mongo["product"].insert_one(doc).inserted_id
        return doc
    return _make
