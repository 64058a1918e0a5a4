from __future__ import annotations

import unittest

from partsmarket.extensions import db
from partsmarket.models import Demand, Listing, Profile
from tests.helpers import BUYER_ID, CIVIC_PADS, OTHER_ID, SELLER_ID, MarketplaceTestCase


class ProfileStatusTestCase(MarketplaceTestCase):
    def test_first_call_provisions_profile_with_initial_tokens(self):
        res = self.client.get("/api/profile/status", headers=self.auth(BUYER_ID))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(
            res.get_json()["data"],
            {
                "role": "buyer",
                "tokens": 3,
                "whatsappE164": None,
                "whatsappStatus": "missing",
                "whatsappVerified": False,
                "whatsappVerifiedAt": None,
                "profileComplete": False,
            },
        )

    def test_set_whatsapp_normalizes_and_is_unverified(self):
        res = self.client.post("/api/profile/whatsapp", headers=self.auth(BUYER_ID), json={"whatsapp": "7123-4567"})
        self.assertEqual(res.status_code, 200)
        data = res.get_json()["data"]
        self.assertEqual(data["whatsappE164"], "+50371234567")
        self.assertEqual(data["whatsappStatus"], "unverified")
        self.assertFalse(data["profileComplete"])

    def test_invalid_number(self):
        res = self.client.post("/api/profile/whatsapp", headers=self.auth(BUYER_ID), json={"whatsapp": "12345"})
        self.assertEqual(res.status_code, 400)
        body = res.get_json()
        self.assertEqual(body["error"], "INVALID_WHATSAPP_NUMBER")
        self.assertEqual(body["issues"][0]["path"], "whatsapp")

    def test_missing_key_is_invalid_request(self):
        res = self.client.post("/api/profile/whatsapp", headers=self.auth(BUYER_ID), json={})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.get_json()["error"], "invalid_request")

    def test_number_in_use_by_someone_else(self):
        self.make_profile(OTHER_ID, whatsapp="+50371234567")
        res = self.client.post(
            "/api/profile/whatsapp",
            headers=self.auth(BUYER_ID),
            json={"whatsapp": "+503 7123 4567"},
        )
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.get_json()["error"], "whatsapp_already_in_use")

    def test_same_number_keeps_verification_and_new_number_resets_it(self):
        self.make_profile(BUYER_ID, whatsapp="+50371234567")
        same = self.client.post("/api/profile/whatsapp", headers=self.auth(BUYER_ID), json={"whatsapp": "71234567"})
        self.assertEqual(same.get_json()["data"]["whatsappStatus"], "verified")

        other = self.client.post("/api/profile/whatsapp", headers=self.auth(BUYER_ID), json={"whatsapp": "79998888"})
        data = other.get_json()["data"]
        self.assertEqual(data["whatsappE164"], "+50379998888")
        self.assertEqual(data["whatsappStatus"], "unverified")


class ProfileCascadeTestCase(MarketplaceTestCase):
    def setUp(self):
        super().setUp()
        self.make_profile(SELLER_ID, whatsapp="+50371234567")
        self.make_profile(BUYER_ID, whatsapp="+50376543210")
        self.create_listing(SELLER_ID)
        self.search_buy(SELLER_ID, CIVIC_PADS)
        self.search_buy(BUYER_ID, CIVIC_PADS)

    def _counts(self, user_id: str) -> tuple[int, int]:
        with self.app.app_context():
            active = Listing.query.filter_by(seller_profile_id=user_id, status="active").count()
            open_demands = Demand.query.filter_by(requester_user_id=user_id, status="open").count()
            return active, open_demands

    def test_clearing_number_deactivates_listings_and_closes_demands(self):
        self.assertEqual(self._counts(SELLER_ID), (1, 1))

        res = self.client.post("/api/profile/whatsapp", headers=self.auth(SELLER_ID), json={"whatsapp": None})
        self.assertEqual(res.status_code, 200)
        data = res.get_json()["data"]
        self.assertEqual(data["whatsappStatus"], "missing")
        self.assertFalse(data["profileComplete"])
        self.assertEqual(self._counts(SELLER_ID), (0, 0))
        # Someone else's rows are untouched.
        self.assertEqual(self._counts(BUYER_ID), (0, 1))

    def test_new_number_does_not_reactivate_anything(self):
        self.client.post("/api/profile/whatsapp", headers=self.auth(SELLER_ID), json={"whatsapp": ""})
        self.assertEqual(self._counts(SELLER_ID), (0, 0))
        res = self.client.post("/api/profile/whatsapp", headers=self.auth(SELLER_ID), json={"whatsapp": "70001234"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(self._counts(SELLER_ID), (0, 0))
        with self.app.app_context():
            self.assertIsNone(db.session.get(Profile, SELLER_ID).whatsapp_verified_at)


if __name__ == "__main__":
    unittest.main()
