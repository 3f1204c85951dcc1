# Pydantic models: request/response DTOs for the API plus the typed inputs the core consumes
# (role-tagged profiles, viewing preferences, ratings, actor context).
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

Role = Literal["renter", "landlord", "agency"]
InterestStatus = Literal["pending", "landlord_liked", "landlord_passed", "expired"]
SenderRole = Literal["renter", "vendor", "agency", "system"]
TenancyStatus = Literal["prospective", "active", "ended"]


# Properties
class PropertyBase(BaseModel):
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=120)
    postcode: str = Field("", max_length=16)
    rent_pcm: int = Field(..., ge=0)
    deposit: int = Field(0, ge=0)
    bedrooms: int = Field(1, ge=0)
    bathrooms: int = Field(1, ge=0)
    property_type: str = "flat"
    available_from: Optional[date] = None
    is_available: bool = True
    can_be_marketed: bool = True
    max_occupants: Optional[int] = Field(None, ge=1)
    pets_allowed: bool = False
    images: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    description: str = ""

    @field_validator("street", "city", "postcode", mode="before")
    @classmethod
    def strip_text(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip()
        return v


class PropertyCreate(PropertyBase):
    pass


# Partial update; vendor_id is accepted here only so the registry can strip and log it
class PropertyUpdate(BaseModel):
    street: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=120)
    postcode: Optional[str] = Field(None, max_length=16)
    rent_pcm: Optional[int] = Field(None, ge=0)
    deposit: Optional[int] = Field(None, ge=0)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    property_type: Optional[str] = None
    available_from: Optional[date] = None
    is_available: Optional[bool] = None
    can_be_marketed: Optional[bool] = None
    max_occupants: Optional[int] = Field(None, ge=1)
    pets_allowed: Optional[bool] = None
    images: Optional[List[str]] = None
    features: Optional[List[str]] = None
    description: Optional[str] = None
    vendor_id: Optional[str] = None


class PropertyRead(PropertyBase):
    id: str
    vendor_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# Profiles: one model per role, discriminated by `role`
class RatingsSummary(BaseModel):
    total_ratings: int = 0
    average_overall_score: float = 0.0
    would_recommend_percentage: float = 0.0


class RenterProfile(BaseModel):
    role: Literal["renter"] = "renter"
    name: str = ""
    situation: Literal["Single", "Couple", "Family", "Professional Sharers"] = "Single"
    local_area: str = ""
    monthly_income: float = Field(0, ge=0)
    preferred_move_in_date: Optional[date] = None
    has_pets: bool = False
    pet_types: List[str] = Field(default_factory=list)
    has_guarantor: bool = False
    has_rental_history: bool = False
    has_previous_landlord_reference: bool = False
    smoking_status: Literal["Non-Smoker", "Vaper", "Smoker"] = "Non-Smoker"
    ratings_summary: Optional[RatingsSummary] = None


class LandlordProfile(BaseModel):
    role: Literal["landlord"] = "landlord"
    name: str = ""
    company_name: Optional[str] = None
    properties_managed: int = Field(0, ge=0)


class AgencyProfile(BaseModel):
    role: Literal["agency"] = "agency"
    name: str = ""
    agency_name: str = ""
    managed_landlord_ids: List[str] = Field(default_factory=list)


Profile = Annotated[Union[RenterProfile, LandlordProfile, AgencyProfile], Field(discriminator="role")]


# Identity/session context handed to core operations that need authorization data
class Actor(BaseModel):
    id: str
    role: Role
    name: str = ""
    profile: Optional[Profile] = None


# Compatibility scoring output
class CompatibilityBreakdown(BaseModel):
    affordability: int
    location: int
    timing: int
    property_fit: int
    tenant_history: int


class CompatibilityScore(BaseModel):
    overall: int = Field(..., ge=0, le=100)
    breakdown: CompatibilityBreakdown
    flags: List[str] = Field(default_factory=list)


# Interests
class InterestCreate(BaseModel):
    property_id: str
    profile: RenterProfile = Field(default_factory=RenterProfile)


class InterestDecision(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class InterestRead(BaseModel):
    id: str
    renter_id: str
    landlord_id: str
    property_id: str
    status: InterestStatus
    compatibility_score: int
    compatibility_flags: List[str] = Field(default_factory=list)
    interested_at: datetime
    expires_at: datetime
    landlord_reviewed_at: Optional[datetime] = None
    created_match_id: Optional[str] = None
    orphaned_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PendingCount(BaseModel):
    landlord_id: str
    pending: int


# Viewing preferences
class TimeSlot(BaseModel):
    day_type: Literal["Weekday", "Weekend"]
    time_of_day: Literal["Morning", "Afternoon", "Evening"]


class ViewingPreferenceCreate(BaseModel):
    flexibility: Literal["ASAP", "Flexible", "Specific"]
    preferred_times: List[TimeSlot] = Field(default_factory=list)
    additional_notes: Optional[str] = Field(None, max_length=500)


class ViewingConfirm(BaseModel):
    date_time: datetime


class TenancyUpdate(BaseModel):
    status: TenancyStatus


# Matches and messages
class MessageRead(BaseModel):
    id: str
    sender_id: str
    sender_role: SenderRole
    content: str
    read: bool
    is_internal: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    internal: bool = False

    @field_validator("content", mode="before")
    @classmethod
    def normalize_content(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip()
        return v


class MatchRead(BaseModel):
    id: str
    property_id: str
    property_snapshot: dict
    vendor_id: str
    vendor_name: str
    renter_id: str
    renter_name: str
    renter_profile: Optional[dict] = None
    match_type: str
    messages: List[MessageRead] = Field(default_factory=list)
    last_message_at: Optional[datetime] = None
    unread_count: int
    landlord_unread_count: int
    viewing_preference: Optional[dict] = None
    confirmed_viewing_date: Optional[datetime] = None
    has_viewing_scheduled: bool
    tenancy_status: TenancyStatus
    can_rate: bool
    has_renter_rated: bool
    has_landlord_rated: bool

    model_config = ConfigDict(from_attributes=True)


class CheckForMatchRequest(BaseModel):
    property_id: str
    profile: Optional[RenterProfile] = None


class CheckForMatchResponse(BaseModel):
    matched: bool


# Ratings
Score = Annotated[int, Field(ge=1, le=5)]


class RatingCreate(BaseModel):
    match_id: str
    from_user_id: str
    from_role: Literal["renter", "landlord"]
    overall_score: Score
    communication: Score
    cleanliness: Score
    reliability: Score
    property_condition: Optional[Score] = None
    respect_for_property: Optional[Score] = None
    review: str = Field("", max_length=2000)
    would_recommend: bool = True


class RatingRead(BaseModel):
    id: str
    match_id: str
    property_id: str
    from_user_id: str
    from_role: str
    to_user_id: str
    to_role: str
    overall_score: int
    would_recommend: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Cascade reporting
class CascadeItemError(BaseModel):
    match_id: str
    detail: str


class CascadeResult(BaseModel):
    succeeded: int = 0
    failed: int = 0
    errors: List[CascadeItemError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


# Property mutation plus the outcome of propagating it to matches
class PropertyChangeResult(BaseModel):
    listing: Optional[PropertyRead] = None
    cascade: CascadeResult = Field(default_factory=CascadeResult)


# Authentication and users
class UserRead(BaseModel):
    id: str
    email: EmailStr
    role: Role
    display_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Role = "renter"
    display_name: Optional[str] = Field(None, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip().lower()
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip().lower()
        return v


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead
