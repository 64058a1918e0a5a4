from __future__ import annotations

from flask import Blueprint, jsonify, request

from partsmarket.services import catalog_service
from partsmarket.utils.auth import require_auth

catalog_bp = Blueprint("catalog_bp", __name__, url_prefix="/api/catalog")


def _options(rows: list[dict]):
    return jsonify({"ok": True, "data": {"options": rows}})


@catalog_bp.get("/brands")
@require_auth
def brands():
    return _options(catalog_service.list_brands())


@catalog_bp.get("/models")
@require_auth
def models():
    brand_id = (request.args.get("brandId") or "").strip()
    if not brand_id:
        return _options([])
    return _options(catalog_service.list_models(brand_id))


@catalog_bp.get("/years")
@require_auth
def years():
    return _options(catalog_service.list_years())


@catalog_bp.get("/item-types")
@require_auth
def item_types():
    return _options(catalog_service.list_item_types())


@catalog_bp.get("/parts")
@require_auth
def parts():
    item_type_id = (request.args.get("itemTypeId") or "").strip()
    if not item_type_id:
        return _options([])
    return _options(catalog_service.list_parts(item_type_id))
