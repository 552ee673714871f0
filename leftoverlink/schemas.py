# leftoverlink/schemas.py
import enum
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# --------------------------
# Vocabularies
# --------------------------
class Category(str, enum.Enum):
    PREPARED_FOOD = "prepared_food"
    BAKED_GOODS = "baked_goods"
    PRODUCE = "produce"
    PACKAGED_FOOD = "packaged_food"
    BEVERAGES = "beverages"


class Allergen(str, enum.Enum):
    GLUTEN = "gluten"
    DAIRY = "dairy"
    NUTS = "nuts"
    EGGS = "eggs"
    SOY = "soy"
    SHELLFISH = "shellfish"
    FISH = "fish"
    SESAME = "sesame"


class ListingStatus(str, enum.Enum):
    AVAILABLE = "available"
    CLAIMED = "claimed"
    COMPLETED = "completed"
    EXPIRED = "expired"


class ClaimStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class UrgencyLevel(str, enum.Enum):
    URGENT = "urgent"
    MODERATE = "moderate"
    GOOD = "good"


UserType = Literal["donor", "recipient", "charity"]


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    # naive timestamps are taken as UTC
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True,
                              validate_default=True)


# --------------------------
# Shared Submodels
# --------------------------
class GeoPoint(CamelModel):
    type: Literal["Point"] = "Point"
    # GeoJSON order: [lng, lat]
    coordinates: List[float] = Field(..., min_length=2, max_length=2)
    address: str = Field(..., min_length=2, max_length=300)

    @field_validator("coordinates")
    @classmethod
    def _check_range(cls, v: List[float]) -> List[float]:
        lng, lat = v
        if not -180 <= lng <= 180 or not -90 <= lat <= 90:
            raise ValueError("Invalid coordinates")
        return v

    @field_validator("address", mode="before")
    @classmethod
    def _strip_address(cls, v):
        return v.strip() if isinstance(v, str) else v

    @property
    def lng(self) -> float:
        return self.coordinates[0]

    @property
    def lat(self) -> float:
        return self.coordinates[1]


class Claim(CamelModel):
    user_id: str
    message: str = ""
    status: ClaimStatus = ClaimStatus.PENDING
    claimed_at: UtcDatetime


class Rating(CamelModel):
    average: float = Field(0, ge=0, le=5)
    count: int = 0


# --------------------------
# Listings
# --------------------------
class Listing(CamelModel):
    id: str = ""
    donor_id: str
    donor_name: str
    title: str
    description: str
    category: Category
    quantity: str
    allergens: List[Allergen] = []
    pickup_instructions: Optional[str] = None
    location: GeoPoint
    expiry_time: UtcDatetime
    status: ListingStatus = ListingStatus.AVAILABLE
    claims: List[Claim] = []
    verified: bool = False
    views: int = 0
    rating: Rating = Field(default_factory=Rating)
    created_at: UtcDatetime
    updated_at: UtcDatetime

    def claim_by(self, user_id: str) -> Optional[Claim]:
        return next((c for c in self.claims if c.user_id == user_id), None)


class ListingIn(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=3, max_length=1000)
    category: Category
    quantity: str = Field(..., min_length=1, max_length=100)
    expiry_time: UtcDatetime
    location: GeoPoint
    allergens: List[Allergen] = []
    pickup_instructions: Optional[str] = Field(None, max_length=500)


class ListingUpdate(CamelModel):
    """Owner-editable content fields; unset fields stay untouched."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=1000)
    quantity: Optional[str] = Field(None, min_length=1, max_length=100)
    expiry_time: Optional[UtcDatetime] = None
    pickup_instructions: Optional[str] = Field(None, max_length=500)
    allergens: Optional[List[Allergen]] = None

    def patch(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class ClaimIn(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    message: Optional[str] = Field(None, max_length=200)


class ClaimReviewIn(CamelModel):
    status: Literal["approved", "rejected", "completed"]


class EnrichedListing(Listing):
    time_remaining: str
    urgency_level: UrgencyLevel
    is_available: bool
    distance: Optional[float] = None            # meters
    distance_in_miles: Optional[float] = None
    claims_count: Optional[int] = None


# --------------------------
# Search
# --------------------------
class ListingQuery(BaseModel):
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    radius_km: float = Field(10.0, ge=0.1, le=100)
    category: Optional[Category] = None
    search: Optional[str] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)

    @property
    def has_center(self) -> bool:
        # a lone coordinate is no center at all
        return self.lat is not None and self.lng is not None

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size


class ListingPage(BaseModel):
    items: List[EnrichedListing]
    page: int
    page_size: int


# --------------------------
# Users (external collaborators)
# --------------------------
class CurrentUser(BaseModel):
    user_id: str
    user_type: UserType


class DonorProfile(BaseModel):
    name: str
    organization: Optional[str] = None
    verified: bool = False

    @property
    def display_name(self) -> str:
        return self.organization or self.name


class ClaimRecord(CamelModel):
    listing_id: str
    title: str
    description: str
    category: Category
    location: GeoPoint
    donor_name: str
    claim: Claim
    listing_status: ListingStatus
    expiry_time: UtcDatetime


class UserStats(CamelModel):
    total_listings: int
    active_listings: int
    completed_listings: int
    claims_made: int
