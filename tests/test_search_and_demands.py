from __future__ import annotations

import unittest

from partsmarket.extensions import db
from partsmarket.models import Demand
from tests.helpers import (
    BUYER_ID,
    CIVIC_PADS,
    COROLLA_BUMPER,
    OTHER_ID,
    SELLER_ID,
    TOYOTA,
    MarketplaceTestCase,
)


class BuySearchTestCase(MarketplaceTestCase):
    def setUp(self):
        super().setUp()
        self.make_profile(SELLER_ID, whatsapp="+50371234567")
        self.make_profile(BUYER_ID, whatsapp="+50376543210")

    def _open_demands(self, user_id: str) -> int:
        with self.app.app_context():
            return Demand.query.filter_by(requester_user_id=user_id, status="open").count()

    def test_match_returns_sell_cards_with_labels(self):
        listing_id = self.create_listing(SELLER_ID).get_json()["data"]["listingId"]
        res = self.search_buy(BUYER_ID)
        self.assertEqual(res.status_code, 200)
        body = res.get_json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["total"], 1)
        self.assertEqual(body["page"], 1)
        self.assertEqual(body["pageSize"], 20)
        self.assertNotIn("data", body)
        card = body["results"][0]
        self.assertEqual(card["cardType"], "sell")
        self.assertEqual(card["listingId"], listing_id)
        self.assertEqual(card["what"]["brandLabelEs"], "Toyota")
        self.assertEqual(card["what"]["year"], 2012)
        self.assertEqual(card["price"]["amount"], 75.0)
        self.assertEqual(self._open_demands(BUYER_ID), 0)

    def test_repeated_miss_is_created_then_existing_then_updated(self):
        first = self.search_buy(BUYER_ID, detailsText="lado izquierdo").get_json()
        self.assertEqual(first["total"], 0)
        self.assertEqual(first["data"]["demandAction"], "created")
        demand_id = first["data"]["demandId"]

        second = self.search_buy(BUYER_ID, detailsText="lado izquierdo").get_json()
        self.assertEqual(second["data"], {"demandAction": "existing", "demandId": demand_id})

        blank = self.search_buy(BUYER_ID).get_json()
        self.assertEqual(blank["data"]["demandAction"], "existing")

        third = self.search_buy(BUYER_ID, detailsText="  lado derecho  ").get_json()
        self.assertEqual(third["data"], {"demandAction": "updated", "demandId": demand_id})

        self.assertEqual(self._open_demands(BUYER_ID), 1)
        with self.app.app_context():
            self.assertEqual(db.session.get(Demand, demand_id).details_text, "lado derecho")

    def test_long_details_text_is_truncated(self):
        res = self.search_buy(BUYER_ID, detailsText="x" * 501)
        self.assertEqual(res.status_code, 200)
        data = res.get_json()["data"]
        self.assertEqual(data["demandAction"], "created")
        with self.app.app_context():
            self.assertEqual(len(db.session.get(Demand, data["demandId"]).details_text), 500)

    def test_only_own_listings_reports_reason_without_demand(self):
        self.create_listing(SELLER_ID)
        res = self.search_buy(SELLER_ID)
        body = res.get_json()
        self.assertEqual(body["results"], [])
        self.assertEqual(body["total"], 0)
        self.assertEqual(body["data"], {"reason": "ONLY_OWN_LISTINGS"})
        self.assertEqual(self._open_demands(SELLER_ID), 0)

    def test_incomplete_profile_gets_reason_without_demand(self):
        self.make_profile(OTHER_ID, whatsapp="+50370001111", verified=False)
        body = self.search_buy(OTHER_ID).get_json()
        self.assertEqual(body["data"], {"reason": "WHATSAPP_REQUIRED"})
        self.assertEqual(self._open_demands(OTHER_ID), 0)

    def test_partial_signature_is_invalid_in_buy_mode(self):
        res = self.client.get(
            "/api/search/listings",
            headers=self.auth(BUYER_ID),
            query_string={"mode": "BUY", "brandId": TOYOTA},
        )
        self.assertEqual(res.status_code, 400)
        body = res.get_json()
        self.assertEqual(body["error"], "invalid_request")
        self.assertIn("partId", {i["path"] for i in body["issues"]})

    def test_page_size_is_bounded(self):
        res = self.search_buy(BUYER_ID, pageSize=51)
        self.assertEqual(res.status_code, 400)

    def test_pagination_reports_total(self):
        self.make_profile(OTHER_ID, whatsapp="+50370001111")
        for seller in (SELLER_ID, OTHER_ID):
            self.assertEqual(self.create_listing(seller).status_code, 201)
        page_one = self.search_buy(BUYER_ID, page=1, pageSize=1).get_json()
        page_two = self.search_buy(BUYER_ID, page=2, pageSize=1).get_json()
        self.assertEqual(page_one["total"], 2)
        self.assertEqual(len(page_one["results"]), 1)
        self.assertEqual(len(page_two["results"]), 1)
        self.assertNotEqual(page_one["results"][0]["listingId"], page_two["results"][0]["listingId"])

    def test_requires_authentication(self):
        res = self.client.get("/api/search/listings", query_string={"mode": "BUY", **COROLLA_BUMPER})
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.get_json()["error"], "unauthorized")


class SellModeAndDemandsTestCase(MarketplaceTestCase):
    def setUp(self):
        super().setUp()
        self.make_profile(BUYER_ID, whatsapp="+50376543210")
        self.make_profile(OTHER_ID, whatsapp="+50370001111")
        self.make_profile(SELLER_ID, whatsapp="+50371234567")
        self.search_buy(BUYER_ID, detailsText="con faros")
        self.search_buy(OTHER_ID, CIVIC_PADS)

    def test_sell_mode_lists_open_demands_newest_first(self):
        res = self.client.get("/api/search/listings", headers=self.auth(SELLER_ID), query_string={"mode": "SELL"})
        body = res.get_json()
        self.assertEqual(res.status_code, 200)
        self.assertEqual(body["total"], 2)
        self.assertTrue(all(card["cardType"] == "buy" for card in body["results"]))
        created = [card["audit"]["createdAt"] for card in body["results"]]
        self.assertEqual(created, sorted(created, reverse=True))

    def test_sell_mode_filters_are_optional(self):
        res = self.client.get(
            "/api/search/listings",
            headers=self.auth(SELLER_ID),
            query_string={"mode": "SELL", "brandId": TOYOTA},
        )
        body = res.get_json()
        self.assertEqual(body["total"], 1)
        card = body["results"][0]
        self.assertEqual(card["what"], COROLLA_BUMPER)
        self.assertEqual(card["request"]["detailsText"], "con faros")
        self.assertEqual(card["audit"]["requesterUserId"], BUYER_ID)

    def test_demand_browse_wraps_page_in_data(self):
        res = self.client.get("/api/search/demands", headers=self.auth(SELLER_ID), query_string={"pageSize": 1})
        body = res.get_json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["data"]["total"], 2)
        self.assertEqual(len(body["data"]["results"]), 1)

    def test_closed_demands_are_not_listed(self):
        self.client.post("/api/profile/whatsapp", headers=self.auth(OTHER_ID), json={"whatsapp": None})
        body = self.client.get("/api/search/demands", headers=self.auth(SELLER_ID)).get_json()
        self.assertEqual(body["data"]["total"], 1)

    def test_my_demands_and_delete(self):
        mine = self.client.get("/api/me/buy-demands", headers=self.auth(BUYER_ID)).get_json()["data"]["results"]
        self.assertEqual(len(mine), 1)
        demand_id = mine[0]["demandId"]

        foreign = self.client.delete(f"/api/me/buy-demands/{demand_id}", headers=self.auth(OTHER_ID))
        self.assertEqual(foreign.status_code, 404)

        res = self.client.delete(f"/api/me/buy-demands/{demand_id}", headers=self.auth(BUYER_ID))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.get_json()["data"], {"demandId": demand_id, "deleted": True})
        with self.app.app_context():
            self.assertIsNone(db.session.get(Demand, demand_id))


if __name__ == "__main__":
    unittest.main()
