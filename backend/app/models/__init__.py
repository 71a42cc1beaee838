from app.models.match import Match
from app.models.shopper_request import BagItem, ShopperRequest
from app.models.traveler import TravelerProfile
from app.models.trip import Trip

__all__ = [
    "BagItem",
    "Match",
    "ShopperRequest",
    "TravelerProfile",
    "Trip",
]
