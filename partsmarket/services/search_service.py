from __future__ import annotations

import logging

from partsmarket.models import Brand, Demand, ItemType, Listing, ModelYear, Part, VehicleModel
from partsmarket.models.demand import DEMAND_OPEN
from partsmarket.services.catalog_service import ItemSignature, optional_signature_filters, validate_signature
from partsmarket.services.demand_service import upsert_on_miss
from partsmarket.services.profile_service import ensure_profile
from partsmarket.utils.clock import isoformat
from partsmarket.utils.errors import invalid_request

logger = logging.getLogger(__name__)

REASON_ONLY_OWN_LISTINGS = "ONLY_OWN_LISTINGS"
REASON_WHATSAPP_REQUIRED = "WHATSAPP_REQUIRED"


def _offset(page: int, page_size: int) -> int:
    return (int(page) - 1) * int(page_size)


def _page_payload(results: list, page: int, page_size: int, total: int) -> dict:
    return {"results": results, "page": int(page), "pageSize": int(page_size), "total": int(total)}


def _sell_card(listing: Listing, brand_label, model_label, year, item_type_label, part_label) -> dict:
    return {
        "cardType": "sell",
        "listingId": listing.id,
        "what": {
            "brandId": listing.brand_id,
            "brandLabelEs": brand_label,
            "modelId": listing.model_id,
            "modelLabelEs": model_label,
            "yearId": listing.year_id,
            "year": year,
            "itemTypeId": listing.item_type_id,
            "itemTypeLabelEs": item_type_label,
            "partId": listing.part_id,
            "partLabelEs": part_label,
        },
        "price": listing.pricing.to_dict() if listing.pricing else None,
        "location": listing.location.to_dict() if listing.location else None,
        "audit": {"createdAt": isoformat(listing.created_at)},
    }


def _sell_cards(listings_query, page: int, page_size: int) -> list[dict]:
    rows = (
        listings_query.with_entities(
            Listing,
            Brand.label_es,
            VehicleModel.label_es,
            ModelYear.year,
            ItemType.label_es,
            Part.label_es,
        )
        .join(Brand, Brand.id == Listing.brand_id)
        .join(VehicleModel, VehicleModel.id == Listing.model_id)
        .join(ModelYear, ModelYear.id == Listing.year_id)
        .join(ItemType, ItemType.id == Listing.item_type_id)
        .join(Part, Part.id == Listing.part_id)
        .order_by(Listing.created_at.desc(), Listing.id.asc())
        .offset(_offset(page, page_size))
        .limit(int(page_size))
        .all()
    )
    return [_sell_card(*row) for row in rows]


def search_buy(user_id: str, query) -> dict:
    """
    Active listings for the exact signature, minus the caller's own.

    An empty result either explains itself (only the caller sells this, or the
    caller cannot be contacted) or registers an open demand for the caller.
    """
    signature = ItemSignature.from_fields(query)
    issues = validate_signature(signature)
    if issues:
        raise invalid_request(issues)

    matching = Listing.query.filter(Listing.status == "active", *signature.filter(Listing))
    others = matching.filter(Listing.seller_profile_id != user_id)
    total = others.count()
    results = _sell_cards(others, query.page, query.page_size) if total else []
    payload = _page_payload(results, query.page, query.page_size, total)
    if total:
        return payload

    own_count = matching.filter(Listing.seller_profile_id == user_id).count()
    if own_count:
        payload["data"] = {"reason": REASON_ONLY_OWN_LISTINGS}
        logger.info("search_buy_only_own user=%s own=%s", user_id, own_count)
        return payload

    profile = ensure_profile(user_id)
    if not profile.profile_complete:
        payload["data"] = {"reason": REASON_WHATSAPP_REQUIRED}
        return payload

    upsert = upsert_on_miss(user_id, signature, query.details_text)
    payload["data"] = upsert.to_dict()
    return payload


def _open_demands(filters_source):
    return Demand.query.filter(
        Demand.status == DEMAND_OPEN,
        *optional_signature_filters(Demand, filters_source),
    )


def search_sell(query) -> dict:
    q = _open_demands(query)
    total = q.count()
    rows = (
        q.order_by(Demand.created_at.desc(), Demand.id.asc())
        .offset(_offset(query.page, query.page_size))
        .limit(int(query.page_size))
        .all()
    )
    return _page_payload([row.to_card() for row in rows], query.page, query.page_size, total)


def search_demands(query) -> dict:
    return search_sell(query)

