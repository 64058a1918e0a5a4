from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from flask import request
from pydantic import BaseModel, ConfigDict, Field, model_validator

from partsmarket.utils.errors import invalid_request


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, populate_by_name=True)


class SignatureFields(_Strict):
    brand_id: UUID = Field(alias="brandId")
    model_id: UUID = Field(alias="modelId")
    year_id: UUID = Field(alias="yearId")
    item_type_id: UUID = Field(alias="itemTypeId")
    part_id: UUID = Field(alias="partId")


class OptionalSignatureFields(_Strict):
    brand_id: Optional[UUID] = Field(default=None, alias="brandId")
    model_id: Optional[UUID] = Field(default=None, alias="modelId")
    year_id: Optional[UUID] = Field(default=None, alias="yearId")
    item_type_id: Optional[UUID] = Field(default=None, alias="itemTypeId")
    part_id: Optional[UUID] = Field(default=None, alias="partId")


class PageFields(_Strict):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=50, alias="pageSize")


class PriceIn(_Strict):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    type: Literal["fixed", "negotiable"] = "fixed"
    currency: Literal["USD"] = "USD"


class LocationIn(_Strict):
    department: str = Field(min_length=1, max_length=80)
    municipality: str = Field(min_length=1, max_length=80)


class CreateListingRequest(SignatureFields):
    price: PriceIn
    location: Optional[LocationIn] = None


class ListingStatusRequest(_Strict):
    status: Literal["active", "inactive"]


class BuySearchQuery(SignatureFields, PageFields):
    mode: Literal["BUY"]
    details_text: Optional[str] = Field(default=None, alias="detailsText")


class SellSearchQuery(OptionalSignatureFields, PageFields):
    mode: Literal["SELL"]


class DemandSearchQuery(OptionalSignatureFields, PageFields):
    pass


class ContactAccessRequest(_Strict):
    listing_id: Optional[UUID] = Field(default=None, alias="listingId")
    demand_id: Optional[UUID] = Field(default=None, alias="demandId")

    @model_validator(mode="after")
    def _exactly_one_target(self):
        if (self.listing_id is None) == (self.demand_id is None):
            raise ValueError("provide exactly one of listingId or demandId")
        return self


class SetWhatsappRequest(_Strict):
    whatsapp: Optional[str]


class VerifyCodeRequest(_Strict):
    code: str = Field(pattern=r"^\d{6}$")


def parse_body(model: type[BaseModel]):
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {} if not request.data else None
    if not isinstance(payload, dict):
        raise invalid_request()
    return model.model_validate(payload)


def parse_args(model: type[BaseModel]):
    return model.model_validate(request.args.to_dict())


def parse_listing_search():
    mode = (request.args.get("mode") or "").strip().upper()
    if mode == "SELL":
        return parse_args(SellSearchQuery)
    return parse_args(BuySearchQuery)
