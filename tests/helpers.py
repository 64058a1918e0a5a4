from __future__ import annotations

import os
import unittest
from unittest.mock import patch

from partsmarket import create_app
from partsmarket.extensions import db
from partsmarket.models import Profile
from partsmarket.services.catalog_service import seed_catalog
from partsmarket.utils.clock import utcnow
from partsmarket.utils.jwt_utils import create_token
from partsmarket.utils.rate_limit import MemoryRateLimiter, set_rate_limiter

TEST_JWT_SECRET = "partsmarket-test-jwt-secret-0123456789"

TOYOTA = "0b8f6f5e-1c2d-4a3b-9e8f-000000000001"
HONDA = "0b8f6f5e-1c2d-4a3b-9e8f-000000000002"
COROLLA = "1c8f6f5e-1c2d-4a3b-9e8f-000000000001"
CIVIC = "1c8f6f5e-1c2d-4a3b-9e8f-000000000002"
Y2012 = "2d8f6f5e-1c2d-4a3b-9e8f-000000000001"
Y2015 = "2d8f6f5e-1c2d-4a3b-9e8f-000000000002"
SUSPENSION = "3e8f6f5e-1c2d-4a3b-9e8f-000000000001"
BRAKES = "3e8f6f5e-1c2d-4a3b-9e8f-000000000002"
BUMPER = "4f8f6f5e-1c2d-4a3b-9e8f-000000000001"
PADS = "4f8f6f5e-1c2d-4a3b-9e8f-000000000002"

CATALOG = {
    "brands": [
        {"id": TOYOTA, "label": "Toyota", "sortOrder": 1},
        {"id": HONDA, "label": "Honda", "sortOrder": 2},
    ],
    "models": [
        {"id": COROLLA, "brandId": TOYOTA, "label": "Corolla"},
        {"id": CIVIC, "brandId": HONDA, "label": "Civic"},
    ],
    "years": [
        {"id": Y2012, "year": 2012},
        {"id": Y2015, "year": 2015},
    ],
    "itemTypes": [
        {"id": SUSPENSION, "label": "Suspension"},
        {"id": BRAKES, "label": "Frenos"},
    ],
    "parts": [
        {"id": BUMPER, "itemTypeId": SUSPENSION, "label": "Bumper"},
        {"id": PADS, "itemTypeId": BRAKES, "label": "Pastillas"},
    ],
}

COROLLA_BUMPER = {
    "brandId": TOYOTA,
    "modelId": COROLLA,
    "yearId": Y2012,
    "itemTypeId": SUSPENSION,
    "partId": BUMPER,
}

CIVIC_PADS = {
    "brandId": HONDA,
    "modelId": CIVIC,
    "yearId": Y2015,
    "itemTypeId": BRAKES,
    "partId": PADS,
}

SELLER_ID = "aaaaaaaa-0000-4000-8000-000000000001"
BUYER_ID = "bbbbbbbb-0000-4000-8000-000000000002"
OTHER_ID = "cccccccc-0000-4000-8000-000000000003"


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


class MarketplaceTestCase(unittest.TestCase):
    """App on an in-memory SQLite database, rebuilt and reseeded for every test."""

    @classmethod
    def setUpClass(cls):
        db_uri = "sqlite:///:memory:"
        cls._env = patch.dict(
            os.environ,
            {
                "SQLALCHEMY_DATABASE_URI": db_uri,
                "DATABASE_URL": db_uri,
                "AUTH_JWT_SECRET": TEST_JWT_SECRET,
            },
        )
        cls._env.start()
        cls.app = create_app()
        cls.app.config.update(TESTING=True)
        cls.client = cls.app.test_client()

    @classmethod
    def tearDownClass(cls):
        cls._env.stop()

    def setUp(self):
        self.clock = FakeClock()
        self.limiter = set_rate_limiter(self.app, MemoryRateLimiter(clock=self.clock))
        with self.app.app_context():
            db.drop_all()
            db.create_all()
            seed_catalog(CATALOG)

    @property
    def settings(self):
        return self.app.config["PARTSMARKET_SETTINGS"]

    def make_profile(self, user_id: str, *, whatsapp: str | None = None, verified: bool = True, tokens: int = 3, role: str = "buyer", blocked: bool = False):
        with self.app.app_context():
            profile = Profile(
                id=user_id,
                role=role,
                tokens=tokens,
                is_blocked=blocked,
                whatsapp_e164=whatsapp,
                whatsapp_verified_at=utcnow() if (whatsapp and verified) else None,
            )
            db.session.add(profile)
            db.session.commit()

    def auth(self, user_id: str) -> dict:
        with self.app.app_context():
            return {"Authorization": f"Bearer {create_token(user_id)}"}

    def create_listing(self, user_id: str, signature: dict | None = None, *, amount=75, location=True):
        body = dict(signature or COROLLA_BUMPER)
        body["price"] = {"amount": amount, "type": "fixed", "currency": "USD"}
        if location:
            body["location"] = {"department": "San Salvador", "municipality": "Santa Tecla"}
        return self.client.post("/api/listings", headers=self.auth(user_id), json=body)

    def search_buy(self, user_id: str, signature: dict | None = None, **extra):
        params = {"mode": "BUY", **(signature or COROLLA_BUMPER), **extra}
        return self.client.get("/api/search/listings", headers=self.auth(user_id), query_string=params)

    def reveal(self, user_id: str, **target):
        return self.client.post("/api/contact-access", headers=self.auth(user_id), json=target)

    def tokens_of(self, user_id: str) -> int:
        with self.app.app_context():
            return int(db.session.get(Profile, user_id).tokens)
