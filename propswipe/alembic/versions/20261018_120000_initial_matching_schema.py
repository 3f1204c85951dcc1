"""initial schema: users, properties, interests, matches, match_messages, ratings

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2026-10-18 12:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c4e7f20b31"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "properties",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("vendor_id", sa.String(length=64), nullable=True),
        sa.Column("street", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=False),
        sa.Column("postcode", sa.String(length=16), nullable=False),
        sa.Column("rent_pcm", sa.Integer(), nullable=False),
        sa.Column("deposit", sa.Integer(), nullable=False),
        sa.Column("bedrooms", sa.Integer(), nullable=False),
        sa.Column("bathrooms", sa.Integer(), nullable=False),
        sa.Column("property_type", sa.String(length=30), nullable=False),
        sa.Column("available_from", sa.Date(), nullable=True),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.Column("can_be_marketed", sa.Boolean(), nullable=False),
        sa.Column("max_occupants", sa.Integer(), nullable=True),
        sa.Column("pets_allowed", sa.Boolean(), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_properties_vendor_id", "properties", ["vendor_id"])
    op.create_index("ix_properties_city", "properties", ["city"])

    op.create_table(
        "interests",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("renter_id", sa.String(length=64), nullable=False),
        sa.Column("landlord_id", sa.String(length=64), nullable=False),
        sa.Column("property_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("compatibility_score", sa.Integer(), nullable=False),
        sa.Column("compatibility_breakdown", sa.JSON(), nullable=True),
        sa.Column("compatibility_flags", sa.JSON(), nullable=False),
        sa.Column("renter_profile", sa.JSON(), nullable=True),
        sa.Column("interested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("landlord_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("landlord_notes", sa.Text(), nullable=True),
        sa.Column("created_match_id", sa.String(length=36), nullable=True),
        sa.Column("orphaned_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_interests_renter_id", "interests", ["renter_id"])
    op.create_index("ix_interests_landlord_id", "interests", ["landlord_id"])
    op.create_index("ix_interests_property_id", "interests", ["property_id"])
    op.create_index("ix_interests_renter_property", "interests", ["renter_id", "property_id"])
    op.create_index("ix_interests_landlord_status", "interests", ["landlord_id", "status"])
    op.create_index("ix_interests_status_expires_at", "interests", ["status", "expires_at"])

    op.create_table(
        "matches",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("property_id", sa.String(length=36), nullable=False),
        sa.Column("property_snapshot", sa.JSON(), nullable=False),
        sa.Column("vendor_id", sa.String(length=64), nullable=False),
        sa.Column("vendor_name", sa.String(length=255), nullable=False),
        sa.Column("renter_id", sa.String(length=64), nullable=False),
        sa.Column("renter_name", sa.String(length=255), nullable=False),
        sa.Column("renter_profile", sa.JSON(), nullable=True),
        sa.Column("source_interest_id", sa.String(length=36), nullable=True),
        sa.Column("match_type", sa.String(length=20), nullable=False),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("unread_count", sa.Integer(), nullable=False),
        sa.Column("landlord_unread_count", sa.Integer(), nullable=False),
        sa.Column("viewing_preference", sa.JSON(), nullable=True),
        sa.Column("confirmed_viewing_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("has_viewing_scheduled", sa.Boolean(), nullable=False),
        sa.Column("tenancy_status", sa.String(length=20), nullable=False),
        sa.Column("can_rate", sa.Boolean(), nullable=False),
        sa.Column("has_renter_rated", sa.Boolean(), nullable=False),
        sa.Column("has_landlord_rated", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_matches_property_id", "matches", ["property_id"])
    op.create_index("ix_matches_vendor_id", "matches", ["vendor_id"])
    op.create_index("ix_matches_renter_id", "matches", ["renter_id"])

    op.create_table(
        "match_messages",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("match_id", sa.String(length=36), sa.ForeignKey("matches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("sender_id", sa.String(length=64), nullable=False),
        sa.Column("sender_role", sa.String(length=20), nullable=False),
        sa.Column("content", sa.String(length=1000), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_match_messages_match_id", "match_messages", ["match_id"])
    op.create_index("ix_match_messages_sender_id", "match_messages", ["sender_id"])
    op.create_index("ix_match_messages_match_position", "match_messages", ["match_id", "position"], unique=True)

    op.create_table(
        "ratings",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("match_id", sa.String(length=36), nullable=False),
        sa.Column("property_id", sa.String(length=36), nullable=False),
        sa.Column("from_user_id", sa.String(length=64), nullable=False),
        sa.Column("from_role", sa.String(length=20), nullable=False),
        sa.Column("to_user_id", sa.String(length=64), nullable=False),
        sa.Column("to_role", sa.String(length=20), nullable=False),
        sa.Column("overall_score", sa.Integer(), nullable=False),
        sa.Column("communication_score", sa.Integer(), nullable=False),
        sa.Column("cleanliness_score", sa.Integer(), nullable=False),
        sa.Column("reliability_score", sa.Integer(), nullable=False),
        sa.Column("property_condition_score", sa.Integer(), nullable=True),
        sa.Column("respect_for_property_score", sa.Integer(), nullable=True),
        sa.Column("review", sa.Text(), nullable=False),
        sa.Column("would_recommend", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_ratings_match_id", "ratings", ["match_id"])
    op.create_index("ix_ratings_from_user_id", "ratings", ["from_user_id"])
    op.create_index("ix_ratings_to_user_id", "ratings", ["to_user_id"])
    op.create_index("ix_ratings_match_from_role", "ratings", ["match_id", "from_role"], unique=True)


def downgrade() -> None:
    op.drop_table("ratings")
    op.drop_table("match_messages")
    op.drop_table("matches")
    op.drop_table("interests")
    op.drop_table("properties")
    op.drop_table("users")
