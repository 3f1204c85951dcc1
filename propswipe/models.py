# SQLAlchemy ORM models for the matching store (users, properties, interests, matches, messages, ratings).
# Business rules live in propswipe/services; models only describe shape and indexes.
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import declarative_mixin, relationship

from .db import Base
from .utils import new_id


@declarative_mixin
class TimestampMixin:
    """Database-managed created_at/updated_at columns."""
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class User(Base, TimestampMixin):
    """Account used by the identity/session layer.

    Roles:
    - renter: swipes on properties and messages landlords
    - landlord: lists properties and reviews renter interest
    - agency: manages properties on behalf of landlords
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, index=True)
    display_name = Column(String(255), nullable=True)


class Property(Base, TimestampMixin):
    """Rental listing. vendor_id is NULL while the property is unclaimed."""
    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=new_id)
    # Opaque vendor/landlord identity; not a FK because identity is owned by an external service
    vendor_id = Column(String(64), nullable=True, index=True)
    street = Column(String(255), nullable=False)
    city = Column(String(120), nullable=False, index=True)
    postcode = Column(String(16), nullable=False, default="")
    rent_pcm = Column(Integer, nullable=False)
    deposit = Column(Integer, nullable=False, default=0)
    bedrooms = Column(Integer, nullable=False, default=1)
    bathrooms = Column(Integer, nullable=False, default=1)
    property_type = Column(String(30), nullable=False, default="flat")
    available_from = Column(Date, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    can_be_marketed = Column(Boolean, nullable=False, default=True)
    max_occupants = Column(Integer, nullable=True)
    pets_allowed = Column(Boolean, nullable=False, default=False)
    images = Column(JSON, nullable=False, default=list)
    features = Column(JSON, nullable=False, default=list)
    description = Column(Text, nullable=False, default="")


class Interest(Base, TimestampMixin):
    """One-sided renter interest in a property awaiting the landlord's decision.

    Status transitions (all targets terminal):
    pending -> landlord_liked | landlord_passed | expired
    """
    __tablename__ = "interests"

    id = Column(String(36), primary_key=True, default=new_id)
    renter_id = Column(String(64), nullable=False, index=True)
    landlord_id = Column(String(64), nullable=False, index=True)
    # Kept without a FK so interests survive property deletion (see orphaned_at)
    property_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")
    compatibility_score = Column(Integer, nullable=False, default=0)
    compatibility_breakdown = Column(JSON, nullable=True)
    compatibility_flags = Column(JSON, nullable=False, default=list)
    # Profile as submitted with the swipe; copied onto the match when the landlord confirms
    renter_profile = Column(JSON, nullable=True)
    interested_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    landlord_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    landlord_notes = Column(Text, nullable=True)
    created_match_id = Column(String(36), nullable=True)
    orphaned_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_interests_renter_property", "renter_id", "property_id"),
        Index("ix_interests_landlord_status", "landlord_id", "status"),
        Index("ix_interests_status_expires_at", "status", "expires_at"),
    )


class Match(Base, TimestampMixin):
    """Bidirectional renter/vendor relationship over one property.

    Viewing state is implied by flags: no request -> preference submitted -> viewing confirmed.
    unread_count is the renter's inbox (vendor/agency/system messages not yet read);
    landlord_unread_count is the landlord's inbox (renter and system messages).
    """
    __tablename__ = "matches"

    id = Column(String(36), primary_key=True, default=new_id)
    # Not a FK: deletion cascades are applied per match by services/propagation.py
    property_id = Column(String(36), nullable=False, index=True)
    property_snapshot = Column(JSON, nullable=False)
    vendor_id = Column(String(64), nullable=False, index=True)
    vendor_name = Column(String(255), nullable=False)
    renter_id = Column(String(64), nullable=False, index=True)
    renter_name = Column(String(255), nullable=False)
    renter_profile = Column(JSON, nullable=True)
    source_interest_id = Column(String(36), nullable=True)
    match_type = Column(String(20), nullable=False, default="mutual")
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    unread_count = Column(Integer, nullable=False, default=0)
    landlord_unread_count = Column(Integer, nullable=False, default=0)
    viewing_preference = Column(JSON, nullable=True)
    confirmed_viewing_date = Column(DateTime(timezone=True), nullable=True)
    has_viewing_scheduled = Column(Boolean, nullable=False, default=False)
    tenancy_status = Column(String(20), nullable=False, default="prospective")
    can_rate = Column(Boolean, nullable=False, default=False)
    has_renter_rated = Column(Boolean, nullable=False, default=False)
    has_landlord_rated = Column(Boolean, nullable=False, default=False)

    messages = relationship(
        "MatchMessage",
        order_by="MatchMessage.position",
        cascade="all, delete-orphan",
        back_populates="match",
    )


class MatchMessage(Base):
    """Append-only message in a match thread; position is the append order."""
    __tablename__ = "match_messages"

    id = Column(String(36), primary_key=True, default=new_id)
    match_id = Column(String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    sender_id = Column(String(64), nullable=False, index=True)
    sender_role = Column(String(20), nullable=False)  # renter | vendor | agency | system
    content = Column(String(1000), nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    is_internal = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    match = relationship("Match", back_populates="messages")

    __table_args__ = (
        Index("ix_match_messages_match_position", "match_id", "position", unique=True),
    )


class Rating(Base):
    """Post-tenancy rating from one match party about the other.

    match_id is not a FK: ratings are kept as history when a property's matches are removed.
    """
    __tablename__ = "ratings"

    id = Column(String(36), primary_key=True, default=new_id)
    match_id = Column(String(36), nullable=False, index=True)
    property_id = Column(String(36), nullable=False)
    from_user_id = Column(String(64), nullable=False, index=True)
    from_role = Column(String(20), nullable=False)
    to_user_id = Column(String(64), nullable=False, index=True)
    to_role = Column(String(20), nullable=False)
    overall_score = Column(Integer, nullable=False)
    communication_score = Column(Integer, nullable=False)
    cleanliness_score = Column(Integer, nullable=False)
    reliability_score = Column(Integer, nullable=False)
    property_condition_score = Column(Integer, nullable=True)
    respect_for_property_score = Column(Integer, nullable=True)
    review = Column(Text, nullable=False, default="")
    would_recommend = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_ratings_match_from_role", "match_id", "from_role", unique=True),
    )
