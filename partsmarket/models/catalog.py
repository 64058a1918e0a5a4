from partsmarket.extensions import db
from partsmarket.models.profile import new_id


class Brand(db.Model):
    __tablename__ = "brands"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    label_es = db.Column(db.String(120), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    def to_option(self) -> dict:
        return {"id": self.id, "label": self.label_es, "sortOrder": int(self.sort_order or 0)}


class VehicleModel(db.Model):
    __tablename__ = "vehicle_models"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    brand_id = db.Column(db.String(36), db.ForeignKey("brands.id"), nullable=False, index=True)
    label_es = db.Column(db.String(120), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    def to_option(self) -> dict:
        return {
            "id": self.id,
            "brandId": self.brand_id,
            "label": self.label_es,
            "sortOrder": int(self.sort_order or 0),
        }


class ModelYear(db.Model):
    __tablename__ = "model_years"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    year = db.Column(db.Integer, nullable=False, unique=True)

    def to_option(self) -> dict:
        return {"id": self.id, "label": str(self.year), "year": int(self.year)}


class ItemType(db.Model):
    __tablename__ = "item_types"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    label_es = db.Column(db.String(120), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    def to_option(self) -> dict:
        return {"id": self.id, "label": self.label_es, "sortOrder": int(self.sort_order or 0)}


class Part(db.Model):
    __tablename__ = "parts"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    item_type_id = db.Column(db.String(36), db.ForeignKey("item_types.id"), nullable=False, index=True)
    label_es = db.Column(db.String(120), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    def to_option(self) -> dict:
        return {
            "id": self.id,
            "itemTypeId": self.item_type_id,
            "label": self.label_es,
            "sortOrder": int(self.sort_order or 0),
        }
