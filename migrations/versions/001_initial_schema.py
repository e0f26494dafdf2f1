"""Initial schema: users (with driver presence) and bookings.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(32), nullable=False, server_default=""),
        sa.Column(
            "role",
            sa.Enum("rider", "driver", name="userrole"),
            nullable=False,
            server_default="rider",
        ),
        sa.Column("fcm_token", sa.String(512), nullable=True),
        sa.Column(
            "is_available", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column("current_lat", sa.Float, nullable=True),
        sa.Column("current_lng", sa.Float, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_users_available", "users", ["is_available"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "rider_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column(
            "pickup_address", sa.String(255), nullable=False, server_default=""
        ),
        sa.Column("notes", sa.Text, nullable=False, server_default=""),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "assigned",
                "en-route",
                "arrived",
                "completed",
                "cancelled",
                name="bookingstatus",
            ),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "(driver_id IS NULL) = (status IN ('pending', 'cancelled'))",
            name="ck_bookings_driver_matches_status",
        ),
    )
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_rider", "bookings", ["rider_id"])
    op.create_index("idx_bookings_driver", "bookings", ["driver_id"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS bookingstatus")
    op.execute("DROP TYPE IF EXISTS userrole")
