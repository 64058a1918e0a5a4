from partsmarket.models.profile import Profile
from partsmarket.models.catalog import Brand, VehicleModel, ModelYear, ItemType, Part
from partsmarket.models.listing import Listing, ListingPricing, ListingLocation
from partsmarket.models.demand import Demand
from partsmarket.models.contact_access import ContactAccess

__all__ = [
    "Profile",
    "Brand",
    "VehicleModel",
    "ModelYear",
    "ItemType",
    "Part",
    "Listing",
    "ListingPricing",
    "ListingLocation",
    "Demand",
    "ContactAccess",
]
