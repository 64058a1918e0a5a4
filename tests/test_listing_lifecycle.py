from __future__ import annotations

import unittest
from unittest.mock import patch

from partsmarket.extensions import db
from partsmarket.models import Listing, Profile
from partsmarket.services import listing_service
from tests.helpers import (
    CIVIC,
    CIVIC_PADS,
    COROLLA_BUMPER,
    OTHER_ID,
    SELLER_ID,
    MarketplaceTestCase,
)


class ListingLifecycleTestCase(MarketplaceTestCase):
    def setUp(self):
        super().setUp()
        self.make_profile(SELLER_ID, whatsapp="+50371234567")

    def test_create_listing_returns_id_and_upgrades_role(self):
        res = self.create_listing(SELLER_ID)
        self.assertEqual(res.status_code, 201)
        body = res.get_json()
        self.assertTrue(body["ok"])
        listing_id = body["data"]["listingId"]
        with self.app.app_context():
            listing = db.session.get(Listing, listing_id)
            self.assertEqual(listing.status, "active")
            self.assertEqual(float(listing.pricing.price_amount), 75.0)
            self.assertEqual(listing.location.municipality, "Santa Tecla")
            self.assertEqual(db.session.get(Profile, SELLER_ID).role, "seller")

    def test_second_active_listing_for_same_signature_is_rejected(self):
        first = self.create_listing(SELLER_ID)
        self.assertEqual(first.status_code, 201)
        second = self.create_listing(SELLER_ID, amount=80)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.get_json()["error"], "duplicate_listing")
        with self.app.app_context():
            self.assertEqual(Listing.query.filter_by(seller_profile_id=SELLER_ID).count(), 1)

    def test_lost_race_on_unique_index_maps_to_duplicate_listing(self):
        self.assertEqual(self.create_listing(SELLER_ID).status_code, 201)
        # Pretend the pre-check ran before the competing insert committed.
        with patch.object(listing_service, "_find_active_duplicate", return_value=None):
            res = self.create_listing(SELLER_ID)
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.get_json()["error"], "duplicate_listing")
        with self.app.app_context():
            self.assertEqual(Listing.query.filter_by(seller_profile_id=SELLER_ID).count(), 1)

    def test_different_signature_is_not_a_duplicate(self):
        self.assertEqual(self.create_listing(SELLER_ID).status_code, 201)
        self.assertEqual(self.create_listing(SELLER_ID, CIVIC_PADS).status_code, 201)

    def test_missing_whatsapp_blocks_publish(self):
        self.make_profile(OTHER_ID)
        res = self.create_listing(OTHER_ID)
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.get_json()["error"], "add_whatsapp_first")

    def test_unverified_whatsapp_blocks_publish(self):
        self.make_profile(OTHER_ID, whatsapp="+50377776666", verified=False)
        res = self.create_listing(OTHER_ID)
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.get_json()["error"], "WHATSAPP_REQUIRED")

    def test_blocked_profile_is_forbidden(self):
        self.make_profile(OTHER_ID, whatsapp="+50377776666", blocked=True)
        res = self.create_listing(OTHER_ID)
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.get_json()["error"], "forbidden")

    def test_inconsistent_signature_reports_issues(self):
        signature = dict(COROLLA_BUMPER, modelId=CIVIC)
        res = self.create_listing(SELLER_ID, signature)
        self.assertEqual(res.status_code, 400)
        body = res.get_json()
        self.assertEqual(body["error"], "invalid_request")
        self.assertIn("model_not_in_brand", [i["message"] for i in body["issues"]])

    def test_malformed_body_reports_pydantic_issues(self):
        res = self.client.post(
            "/api/listings",
            headers=self.auth(SELLER_ID),
            json={"brandId": "not-a-uuid", "price": {"amount": -1}},
        )
        self.assertEqual(res.status_code, 400)
        body = res.get_json()
        self.assertEqual(body["error"], "invalid_request")
        paths = {i["path"] for i in body["issues"]}
        self.assertIn("brandId", paths)
        self.assertIn("price.amount", paths)

    def test_owner_toggles_status_and_republish_creates_new_record(self):
        listing_id = self.create_listing(SELLER_ID).get_json()["data"]["listingId"]
        res = self.client.patch(
            f"/api/listings/{listing_id}/status",
            headers=self.auth(SELLER_ID),
            json={"status": "inactive"},
        )
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.get_json()["data"], {"listingId": listing_id, "status": "inactive"})

        republished = self.create_listing(SELLER_ID)
        self.assertEqual(republished.status_code, 201)
        self.assertNotEqual(republished.get_json()["data"]["listingId"], listing_id)

        # Reactivating the old record would now collide with the republished one.
        res = self.client.patch(
            f"/api/listings/{listing_id}/status",
            headers=self.auth(SELLER_ID),
            json={"status": "active"},
        )
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.get_json()["error"], "duplicate_listing")

    def test_status_toggle_by_non_owner_is_not_found(self):
        listing_id = self.create_listing(SELLER_ID).get_json()["data"]["listingId"]
        self.make_profile(OTHER_ID, whatsapp="+50377776666")
        res = self.client.patch(
            f"/api/listings/{listing_id}/status",
            headers=self.auth(OTHER_ID),
            json={"status": "inactive"},
        )
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.get_json()["error"], "not_found")

        missing = self.client.patch(
            "/api/listings/00000000-0000-4000-8000-000000000000/status",
            headers=self.auth(SELLER_ID),
            json={"status": "inactive"},
        )
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.get_json()["error"], "not_found")

    def test_my_listings_lists_all_statuses_for_republish(self):
        first = self.create_listing(SELLER_ID).get_json()["data"]["listingId"]
        self.client.patch(f"/api/listings/{first}/status", headers=self.auth(SELLER_ID), json={"status": "inactive"})
        self.create_listing(SELLER_ID, CIVIC_PADS)

        res = self.client.get("/api/me/listings", headers=self.auth(SELLER_ID))
        self.assertEqual(res.status_code, 200)
        rows = res.get_json()["data"]["results"]
        self.assertEqual(len(rows), 2)
        by_id = {row["listingId"]: row for row in rows}
        self.assertEqual(by_id[first]["status"], "inactive")
        self.assertEqual(by_id[first]["what"], COROLLA_BUMPER)
        self.assertEqual(by_id[first]["price"], {"amount": 75.0, "type": "fixed", "currency": "USD"})


if __name__ == "__main__":
    unittest.main()
