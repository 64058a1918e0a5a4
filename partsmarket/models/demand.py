from sqlalchemy import text

from partsmarket.extensions import db
from partsmarket.models.profile import new_id
from partsmarket.utils.clock import isoformat, utcnow

DEMAND_OPEN = "open"
DEMAND_CLOSED = "closed"


class Demand(db.Model):
    __tablename__ = "demands"
    __table_args__ = (
        db.Index(
            "uq_demands_open_signature",
            "requester_user_id",
            "brand_id",
            "model_id",
            "year_id",
            "item_type_id",
            "part_id",
            unique=True,
            postgresql_where=text("status = 'open'"),
            sqlite_where=text("status = 'open'"),
        ),
        db.CheckConstraint("status IN ('open', 'closed')", name="ck_demands_status"),
        db.Index("ix_demands_status_created_at", "status", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    requester_user_id = db.Column(db.String(36), db.ForeignKey("profiles.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=DEMAND_OPEN, server_default=DEMAND_OPEN)

    brand_id = db.Column(db.String(36), db.ForeignKey("brands.id"), nullable=False)
    model_id = db.Column(db.String(36), db.ForeignKey("vehicle_models.id"), nullable=False)
    year_id = db.Column(db.String(36), db.ForeignKey("model_years.id"), nullable=False)
    item_type_id = db.Column(db.String(36), db.ForeignKey("item_types.id"), nullable=False)
    part_id = db.Column(db.String(36), db.ForeignKey("parts.id"), nullable=False)

    details_text = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def is_open(self) -> bool:
        return (self.status or "") == DEMAND_OPEN

    def signature_dict(self) -> dict:
        return {
            "brandId": self.brand_id,
            "modelId": self.model_id,
            "yearId": self.year_id,
            "itemTypeId": self.item_type_id,
            "partId": self.part_id,
        }

    def to_card(self) -> dict:
        return {
            "cardType": "buy",
            "demandId": self.id,
            "what": self.signature_dict(),
            "request": {"detailsText": self.details_text},
            "audit": {
                "createdAt": isoformat(self.created_at),
                "requesterUserId": self.requester_user_id,
                "status": self.status,
            },
        }

    def to_owner_dict(self) -> dict:
        return {
            "demandId": self.id,
            "status": self.status,
            "what": self.signature_dict(),
            "detailsText": self.details_text,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
