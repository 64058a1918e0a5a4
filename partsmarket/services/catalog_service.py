from __future__ import annotations

from dataclasses import dataclass

from partsmarket.extensions import db
from partsmarket.models import Brand, ItemType, ModelYear, Part, VehicleModel
from partsmarket.utils.errors import issue


@dataclass(frozen=True)
class ItemSignature:
    brand_id: str
    model_id: str
    year_id: str
    item_type_id: str
    part_id: str

    @classmethod
    def from_fields(cls, fields) -> "ItemSignature":
        return cls(
            brand_id=str(fields.brand_id),
            model_id=str(fields.model_id),
            year_id=str(fields.year_id),
            item_type_id=str(fields.item_type_id),
            part_id=str(fields.part_id),
        )

    def columns(self) -> dict:
        return {
            "brand_id": self.brand_id,
            "model_id": self.model_id,
            "year_id": self.year_id,
            "item_type_id": self.item_type_id,
            "part_id": self.part_id,
        }

    def filter(self, model) -> list:
        return [getattr(model, name) == value for name, value in self.columns().items()]


def optional_signature_filters(model, fields) -> list:
    out = []
    for name in ("brand_id", "model_id", "year_id", "item_type_id", "part_id"):
        value = getattr(fields, name, None)
        if value is not None:
            out.append(getattr(model, name) == str(value))
    return out


def validate_signature(signature: ItemSignature) -> list[dict]:
    issues: list[dict] = []
    brand = db.session.get(Brand, signature.brand_id)
    model = db.session.get(VehicleModel, signature.model_id)
    year = db.session.get(ModelYear, signature.year_id)
    item_type = db.session.get(ItemType, signature.item_type_id)
    part = db.session.get(Part, signature.part_id)

    if brand is None:
        issues.append(issue("brandId", "unknown_brand"))
    if model is None:
        issues.append(issue("modelId", "unknown_model"))
    elif brand is not None and model.brand_id != brand.id:
        issues.append(issue("modelId", "model_not_in_brand"))
    if year is None:
        issues.append(issue("yearId", "unknown_year"))
    if item_type is None:
        issues.append(issue("itemTypeId", "unknown_item_type"))
    if part is None:
        issues.append(issue("partId", "unknown_part"))
    elif item_type is not None and part.item_type_id != item_type.id:
        issues.append(issue("partId", "part_not_in_item_type"))
    return issues


def list_brands() -> list[dict]:
    rows = Brand.query.order_by(Brand.sort_order.asc(), Brand.label_es.asc()).all()
    return [row.to_option() for row in rows]


def list_models(brand_id: str) -> list[dict]:
    rows = (
        VehicleModel.query.filter_by(brand_id=brand_id)
        .order_by(VehicleModel.sort_order.asc(), VehicleModel.label_es.asc())
        .all()
    )
    return [row.to_option() for row in rows]


def list_years() -> list[dict]:
    rows = ModelYear.query.order_by(ModelYear.year.desc()).all()
    return [row.to_option() for row in rows]


def list_item_types() -> list[dict]:
    rows = ItemType.query.order_by(ItemType.sort_order.asc(), ItemType.label_es.asc()).all()
    return [row.to_option() for row in rows]


def list_parts(item_type_id: str) -> list[dict]:
    rows = (
        Part.query.filter_by(item_type_id=item_type_id)
        .order_by(Part.sort_order.asc(), Part.label_es.asc())
        .all()
    )
    return [row.to_option() for row in rows]


def _upsert(model, row_id: str, **values) -> bool:
    existing = db.session.get(model, row_id)
    if existing is None:
        db.session.add(model(id=row_id, **values))
        return True
    for key, value in values.items():
        setattr(existing, key, value)
    return False


def seed_catalog(data: dict) -> dict:
    """
    Loads catalog rows from a mapping of lists keyed by brands, models, years,
    itemTypes and parts. Rows carry their own ids so reseeding is idempotent.
    """
    created = {"brands": 0, "models": 0, "years": 0, "itemTypes": 0, "parts": 0}
    for row in data.get("brands") or []:
        created["brands"] += _upsert(Brand, row["id"], label_es=row["label"], sort_order=int(row.get("sortOrder") or 0))
    for row in data.get("models") or []:
        created["models"] += _upsert(
            VehicleModel,
            row["id"],
            brand_id=row["brandId"],
            label_es=row["label"],
            sort_order=int(row.get("sortOrder") or 0),
        )
    for row in data.get("years") or []:
        created["years"] += _upsert(ModelYear, row["id"], year=int(row["year"]))
    for row in data.get("itemTypes") or []:
        created["itemTypes"] += _upsert(ItemType, row["id"], label_es=row["label"], sort_order=int(row.get("sortOrder") or 0))
    for row in data.get("parts") or []:
        created["parts"] += _upsert(
            Part,
            row["id"],
            item_type_id=row["itemTypeId"],
            label_es=row["label"],
            sort_order=int(row.get("sortOrder") or 0),
        )
    db.session.commit()
    return created
