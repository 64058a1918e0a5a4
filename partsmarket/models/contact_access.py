from partsmarket.extensions import db
from partsmarket.models.profile import new_id
from partsmarket.utils.clock import utcnow


class ContactAccess(db.Model):
    """A paid reveal: at most one per requester and target."""

    __tablename__ = "contact_accesses"
    __table_args__ = (
        db.UniqueConstraint("requester_user_id", "listing_id", name="uq_contact_accesses_requester_listing"),
        db.UniqueConstraint("requester_user_id", "demand_id", name="uq_contact_accesses_requester_demand"),
        db.CheckConstraint(
            "(listing_id IS NULL) <> (demand_id IS NULL)",
            name="ck_contact_accesses_single_target",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    requester_user_id = db.Column(db.String(36), db.ForeignKey("profiles.id"), nullable=False, index=True)
    listing_id = db.Column(db.String(36), db.ForeignKey("listings.id"), nullable=True, index=True)
    demand_id = db.Column(db.String(36), db.ForeignKey("demands.id", ondelete="CASCADE"), nullable=True, index=True)
    token_cost = db.Column(db.Integer, nullable=False, default=1, server_default="1")
    channel = db.Column(db.String(16), nullable=False, default="whatsapp", server_default="whatsapp")
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
