"""initial cashback ledger schema

Revision ID: 4e7b1c2a9d10
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4e7b1c2a9d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("customers"):
        op.create_table(
            "customers",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("name", sa.String(length=200), nullable=True),
            sa.Column("phone", sa.String(length=30), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("password_hash", sa.String(length=255), nullable=True),
            sa.Column("birthdate", sa.Date(), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
            sa.Column("last_login_at", sa.TIMESTAMP(), nullable=True),
            sa.UniqueConstraint("phone", name="uq_customers_phone"),
            sa.UniqueConstraint("email", name="uq_customers_email"),
        )

    if not inspector.has_table("admins"):
        op.create_table(
            "admins",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="admin"),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
            sa.UniqueConstraint("email", name="uq_admins_email"),
        )

    if not inspector.has_table("store_locations"):
        op.create_table(
            "store_locations",
            sa.Column("id", sa.String(length=100), primary_key=True, nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("address", sa.String(length=300), nullable=True),
            sa.Column("latitude", sa.Float(), nullable=False),
            sa.Column("longitude", sa.Float(), nullable=False),
            sa.Column("radius_meters", sa.Float(), nullable=False),
        )

    if not inspector.has_table("ledger_entries"):
        op.create_table(
            "ledger_entries",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("customer_id", sa.Uuid(), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("cashback_amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("kind", sa.String(length=20), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("expires_at", sa.TIMESTAMP(), nullable=True),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            sa.Column("store_id", sa.String(length=100), nullable=True),
            sa.Column("receipt_url", sa.String(length=500), nullable=True),
            sa.Column("comment", sa.String(length=500), nullable=True),
            sa.Column("idempotency_key", sa.String(length=150), nullable=True),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=False),
            sa.CheckConstraint("amount > 0", name="ck_ledger_entries_amount_positive"),
            sa.CheckConstraint("kind IN ('purchase', 'redemption')", name="ck_ledger_entries_kind"),
            sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_ledger_entries_status"),
            sa.UniqueConstraint(
                "customer_id", "idempotency_key", name="uq_ledger_entries_customer_idempotency_key"
            ),
        )
        op.create_index("ix_ledger_entries_customer_created", "ledger_entries", ["customer_id", "created_at"])
        op.create_index(
            "ix_ledger_entries_customer_kind_status", "ledger_entries", ["customer_id", "kind", "status"]
        )

    if not inspector.has_table("credits"):
        op.create_table(
            "credits",
            sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
            sa.Column("customer_id", sa.Uuid(), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("payment_method", sa.String(length=20), nullable=False, server_default="credit_card"),
            sa.Column("external_session_id", sa.String(length=200), nullable=True),
            sa.Column("expires_at", sa.TIMESTAMP(), nullable=False),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
            sa.UniqueConstraint("external_session_id", name="uq_credits_external_session_id"),
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table in ("credits", "ledger_entries", "store_locations", "admins", "customers"):
        if inspector.has_table(table):
            op.drop_table(table)
