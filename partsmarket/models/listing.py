from decimal import Decimal

from sqlalchemy import text

from partsmarket.extensions import db
from partsmarket.models.profile import new_id
from partsmarket.utils.clock import isoformat, utcnow

LISTING_STATUSES = ("active", "inactive")


class Listing(db.Model):
    __tablename__ = "listings"
    __table_args__ = (
        # One active listing per seller per signature.
        db.Index(
            "uq_listings_active_seller_signature",
            "seller_profile_id",
            "brand_id",
            "model_id",
            "year_id",
            "item_type_id",
            "part_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        db.Index("ix_listings_signature_status", "brand_id", "model_id", "year_id", "item_type_id", "part_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    status = db.Column(db.String(16), nullable=False, default="active", server_default="active", index=True)
    seller_profile_id = db.Column(db.String(36), db.ForeignKey("profiles.id"), nullable=False, index=True)

    brand_id = db.Column(db.String(36), db.ForeignKey("brands.id"), nullable=False)
    model_id = db.Column(db.String(36), db.ForeignKey("vehicle_models.id"), nullable=False)
    year_id = db.Column(db.String(36), db.ForeignKey("model_years.id"), nullable=False)
    item_type_id = db.Column(db.String(36), db.ForeignKey("item_types.id"), nullable=False)
    part_id = db.Column(db.String(36), db.ForeignKey("parts.id"), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    pricing = db.relationship("ListingPricing", uselist=False, cascade="all, delete-orphan", lazy="joined")
    location = db.relationship("ListingLocation", uselist=False, cascade="all, delete-orphan", lazy="joined")

    @property
    def is_active(self) -> bool:
        return (self.status or "") == "active"

    def signature_dict(self) -> dict:
        return {
            "brandId": self.brand_id,
            "modelId": self.model_id,
            "yearId": self.year_id,
            "itemTypeId": self.item_type_id,
            "partId": self.part_id,
        }

    def to_owner_dict(self) -> dict:
        return {
            "listingId": self.id,
            "status": self.status,
            "what": self.signature_dict(),
            "price": self.pricing.to_dict() if self.pricing else None,
            "location": self.location.to_dict() if self.location else None,
            "audit": {
                "createdAt": isoformat(self.created_at),
                "updatedAt": isoformat(self.updated_at),
            },
        }


class ListingPricing(db.Model):
    __tablename__ = "listing_pricing"

    listing_id = db.Column(db.String(36), db.ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True)
    price_amount = db.Column(db.Numeric(12, 2), nullable=False)
    price_type = db.Column(db.String(16), nullable=False, default="fixed", server_default="fixed")
    currency = db.Column(db.String(3), nullable=False, default="USD", server_default="USD")

    def to_dict(self) -> dict:
        amount = self.price_amount
        if isinstance(amount, Decimal):
            amount = float(amount)
        return {"amount": amount, "type": self.price_type, "currency": self.currency}


class ListingLocation(db.Model):
    __tablename__ = "listing_locations"

    listing_id = db.Column(db.String(36), db.ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True)
    department = db.Column(db.String(80), nullable=False)
    municipality = db.Column(db.String(80), nullable=False)

    def to_dict(self) -> dict:
        return {"department": self.department, "municipality": self.municipality}
