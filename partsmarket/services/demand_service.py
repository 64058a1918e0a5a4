from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from partsmarket.extensions import db
from partsmarket.models import Demand
from partsmarket.models.demand import DEMAND_OPEN
from partsmarket.services.catalog_service import ItemSignature
from partsmarket.utils.clock import utcnow
from partsmarket.utils.db_errors import is_unique_violation
from partsmarket.utils.errors import not_found

logger = logging.getLogger(__name__)

DETAILS_TEXT_MAX = 500

DEMAND_CREATED = "created"
DEMAND_EXISTING = "existing"
DEMAND_UPDATED = "updated"


@dataclass
class DemandUpsert:
    action: str
    demand: Demand

    def to_dict(self) -> dict:
        return {"demandAction": self.action, "demandId": self.demand.id}


def clean_details_text(raw: str | None) -> str | None:
    text = (raw or "").strip()
    if not text:
        return None
    return text[:DETAILS_TEXT_MAX]


def _find_open_demand(requester_id: str, signature: ItemSignature) -> Demand | None:
    return Demand.query.filter(
        Demand.requester_user_id == requester_id,
        Demand.status == DEMAND_OPEN,
        *signature.filter(Demand),
    ).first()


def _reconcile(existing: Demand, details_text: str | None) -> DemandUpsert:
    if details_text and details_text != (existing.details_text or None):
        existing.details_text = details_text
        existing.updated_at = utcnow()
        db.session.commit()
        return DemandUpsert(DEMAND_UPDATED, existing)
    return DemandUpsert(DEMAND_EXISTING, existing)


def upsert_on_miss(requester_id: str, signature: ItemSignature, details_text: str | None = None) -> DemandUpsert:
    """
    Registers an open demand after a BUY search came back empty.

    The insert is attempted first; the partial unique index on open demands
    decides whether this is a repeat, in which case the existing row is read
    back and its details refreshed when the new text differs.
    """
    details = clean_details_text(details_text)
    now = utcnow()
    demand = Demand(
        requester_user_id=requester_id,
        status=DEMAND_OPEN,
        details_text=details,
        created_at=now,
        updated_at=now,
        **signature.columns(),
    )
    db.session.add(demand)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if not is_unique_violation(e, constraint="uq_demands_open_signature", table="demands"):
            raise
        existing = _find_open_demand(requester_id, signature)
        if existing is None:
            # The conflicting row was closed between the insert and the read.
            raise
        result = _reconcile(existing, details)
        logger.info(
            "demand_upsert action=%s demand_id=%s requester=%s",
            result.action,
            existing.id,
            requester_id,
        )
        return result

    logger.info("demand_upsert action=%s demand_id=%s requester=%s", DEMAND_CREATED, demand.id, requester_id)
    return DemandUpsert(DEMAND_CREATED, demand)


def list_own_demands(requester_id: str) -> list[dict]:
    rows = (
        Demand.query.filter(Demand.requester_user_id == requester_id)
        .order_by(Demand.created_at.desc())
        .all()
    )
    return [row.to_owner_dict() for row in rows]


def delete_own_demand(requester_id: str, demand_id: str) -> None:
    demand = Demand.query.filter(Demand.id == demand_id, Demand.requester_user_id == requester_id).first()
    if demand is None:
        raise not_found()
    db.session.delete(demand)
    db.session.commit()
    logger.info("demand_deleted demand_id=%s requester=%s", demand_id, requester_id)
