"""create gamification tables

Revision ID: 5c1f0e2a9b7d
Revises: 
Create Date: 2026-10-19 12:10:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1f0e2a9b7d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None
app_role_enum = sa.Enum("ADMIN", "USER", name="approle", native_enum=False)
title_type_enum = sa.Enum("MOVIE", "SERIES", name="titletype", native_enum=False)
xp_event_type_enum = sa.Enum(
    "FIRST_REVIEW_TITLE",
    "DAILY_REVIEW",
    "EXTRA_COMMENT",
    "PROFILE_COMPLETE",
    "CHALLENGE_COMPLETE",
    name="xpeventtype",
    native_enum=False,
)
challenge_type_enum = sa.Enum("DAILY", "WEEKLY", "UNIQUE", name="challengetype", native_enum=False)
challenge_status_enum = sa.Enum(
    "IN_PROGRESS", "COMPLETED", "CLAIMED", name="challengestatus", native_enum=False
)
requirement_type_enum = sa.Enum(
    "REVIEWS_COUNT",
    "LEVEL",
    "HIGH_RATINGS",
    "LOW_RATINGS",
    "COMMENTS_COUNT",
    "GENRES_EXPLORED",
    name="requirementtype",
    native_enum=False,
)
moderation_action_enum = sa.Enum(
    "SOFT_DELETE", "RESTORE", name="moderationaction", native_enum=False
)


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        "profile",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=200), nullable=True),
        sa.Column("username", sa.String(length=100), nullable=True),
        sa.Column("avatar_url", sa.String(length=500), nullable=True),
        sa.Column("profile_completed_at", sa.DateTime(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
    )

    op.create_table(
        "userrole",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("role", app_role_enum, nullable=False, server_default="USER"),
        sa.UniqueConstraint("user_id", "role", name="uq_user_role"),
    )
    op.create_index("ix_userrole_user_id", "userrole", ["user_id"], unique=False)

    op.create_table(
        "title",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=300), nullable=False),
        sa.Column("type", title_type_enum, nullable=False),
        sa.Column("release_year", sa.Integer(), nullable=True),
        sa.Column("synopsis", sa.String(length=4000), nullable=True),
        sa.Column("poster_url", sa.String(length=500), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
    )
    op.create_index("ix_title_name", "title", ["name"], unique=False)

    op.create_table(
        "category",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False, unique=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
    )

    op.create_table(
        "titlecategory",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["title_id"], ["title.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["category_id"], ["category.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("title_id", "category_id", name="uq_title_category"),
    )

    op.create_table(
        "review",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("title_id", sa.Integer(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.String(length=2000), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.ForeignKeyConstraint(["title_id"], ["title.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "title_id", name="uq_review_user_title"),
    )
    op.create_index("ix_review_user_id", "review", ["user_id"], unique=False)

    op.create_table(
        "xpevent",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("event_type", xp_event_type_enum, nullable=False),
        sa.Column("xp_amount", sa.Integer(), nullable=False),
        sa.Column("reference_id", sa.String(length=100), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.UniqueConstraint(
            "user_id", "event_type", "reference_id", name="uq_xp_event_reference"
        ),
    )
    op.create_index("ix_xpevent_user_id", "xpevent", ["user_id"], unique=False)

    op.create_table(
        "userxp",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False, unique=True),
        sa.Column("total_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
    )

    op.create_table(
        "challenge",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("type", challenge_type_enum, nullable=False),
        sa.Column("target_value", sa.Integer(), nullable=False),
        sa.Column("xp_reward", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("start_date", sa.DateTime(), nullable=True),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint("target_value > 0", name="ck_challenge_target_positive"),
    )

    op.create_table(
        "challengeprogress",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("challenge_id", sa.Integer(), nullable=False),
        sa.Column("current_progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "status", challenge_status_enum, nullable=False, server_default="IN_PROGRESS"
        ),
        sa.Column("last_reset_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.ForeignKeyConstraint(["challenge_id"], ["challenge.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "challenge_id", name="uq_challenge_progress_user"),
    )
    op.create_index(
        "ix_challengeprogress_user_id", "challengeprogress", ["user_id"], unique=False
    )

    op.create_table(
        "achievement",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=100), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("icon", sa.String(length=100), nullable=True),
        sa.Column("requirement_type", requirement_type_enum, nullable=False),
        sa.Column("requirement_value", sa.Integer(), nullable=False),
        sa.Column("xp_reward", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint(
            "requirement_value > 0", name="ck_achievement_requirement_positive"
        ),
    )

    op.create_table(
        "achievementunlock",
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("achievement_id", sa.Integer(), nullable=False),
        sa.Column(
            "unlocked_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
        sa.ForeignKeyConstraint(["achievement_id"], ["achievement.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "achievement_id"),
    )

    op.create_table(
        "moderationlog",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("admin_id", sa.String(length=36), nullable=False),
        sa.Column("action", moderation_action_enum, nullable=False),
        sa.Column("target_type", sa.String(length=100), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()
        ),
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_table("moderationlog")
    op.drop_table("achievementunlock")
    op.drop_table("achievement")
    op.drop_index("ix_challengeprogress_user_id", table_name="challengeprogress")
    op.drop_table("challengeprogress")
    op.drop_table("challenge")
    op.drop_table("userxp")
    op.drop_index("ix_xpevent_user_id", table_name="xpevent")
    op.drop_table("xpevent")
    op.drop_index("ix_review_user_id", table_name="review")
    op.drop_table("review")
    op.drop_table("titlecategory")
    op.drop_table("category")
    op.drop_index("ix_title_name", table_name="title")
    op.drop_table("title")
    op.drop_index("ix_userrole_user_id", table_name="userrole")
    op.drop_table("userrole")
    op.drop_table("profile")
