import uuid

from partsmarket.extensions import db
from partsmarket.utils.clock import isoformat, utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class Profile(db.Model):
    __tablename__ = "profiles"
    __table_args__ = (
        db.UniqueConstraint("whatsapp_e164", name="uq_profiles_whatsapp_e164"),
    )

    # Same id as the authenticated user.
    id = db.Column(db.String(36), primary_key=True)

    role = db.Column(db.String(16), nullable=False, default="buyer", server_default="buyer")
    tokens = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    is_blocked = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())

    whatsapp_e164 = db.Column(db.String(20), nullable=True)
    whatsapp_verified_at = db.Column(db.DateTime, nullable=True)
    whatsapp_verify_code_hash = db.Column(db.String(255), nullable=True)
    whatsapp_verify_expires_at = db.Column(db.DateTime, nullable=True)
    whatsapp_verify_sent_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def whatsapp_status(self) -> str:
        if not self.whatsapp_e164:
            return "missing"
        if self.whatsapp_verified_at is None:
            return "unverified"
        return "verified"

    @property
    def whatsapp_verified(self) -> bool:
        return self.whatsapp_status == "verified"

    @property
    def profile_complete(self) -> bool:
        return self.whatsapp_verified

    def to_status_dict(self) -> dict:
        return {
            "role": self.role or "buyer",
            "tokens": int(self.tokens or 0),
            "whatsappE164": self.whatsapp_e164,
            "whatsappStatus": self.whatsapp_status,
            "whatsappVerified": self.whatsapp_verified,
            "whatsappVerifiedAt": isoformat(self.whatsapp_verified_at),
            "profileComplete": self.profile_complete,
        }
