"""Create the append-only orders table."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


order_status = sa.Enum("CONFIRMED", name="order_status")


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("product_type", sa.String(length=32), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("amount", sa.Numeric(16, 2), nullable=False),
        sa.Column("fees", sa.Numeric(16, 2), nullable=False),
        sa.Column("status", order_status, nullable=False),
        sa.Column("voucher_code", sa.String(length=32), nullable=False),
        sa.Column("invoice_id", sa.String(length=32), nullable=False),
        sa.Column("payment_id", sa.String(length=64), nullable=False),
        sa.Column("idempotency_key", sa.String(length=255), nullable=True),
        sa.Column("quote_token_hash", sa.String(length=64), nullable=False),
        sa.Column("quote_claims", sa.Text(), nullable=False),
        sa.Column("itinerary_id", sa.String(length=64), nullable=True),
        sa.Column("selection_refs", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("voucher_code"),
        sa.UniqueConstraint("invoice_id"),
        sa.UniqueConstraint("idempotency_key"),
    )
    op.create_index("ix_orders_quote_token_hash", "orders", ["quote_token_hash"])
    op.create_index("ix_orders_itinerary_id", "orders", ["itinerary_id"])


def downgrade() -> None:
    op.drop_index("ix_orders_itinerary_id", table_name="orders")
    op.drop_index("ix_orders_quote_token_hash", table_name="orders")
    op.drop_table("orders")
    order_status.drop(op.get_bind(), checkfirst=True)
