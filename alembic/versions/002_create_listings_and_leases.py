"""002: create listings and leases tables

Parent resources owned by the resource store. Billing reads their rate
inputs and toggles listings.is_active; nothing else.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE listings (
            id              VARCHAR(64)     PRIMARY KEY,
            owner_id        VARCHAR(64)     NOT NULL,
            title           VARCHAR(200)    NOT NULL,
            unit_type       VARCHAR(30)     NOT NULL,
            rooms           INT,
            beds            INT,
            bhk_label       VARCHAR(20),
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_rooms_gte_0 CHECK (rooms IS NULL OR rooms >= 0),
            CONSTRAINT ck_listings_beds_gte_0 CHECK (beds IS NULL OR beds >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_listings_owner ON listings (owner_id);")
    op.execute("""
        CREATE TRIGGER trg_listings_updated_at
        BEFORE UPDATE ON listings
        FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE leases (
            id                  VARCHAR(64)     PRIMARY KEY,
            listing_id          VARCHAR(64)     NOT NULL REFERENCES listings(id),
            tenant_id           VARCHAR(64),
            monthly_rent        BIGINT          NOT NULL,
            security_deposit    BIGINT          NOT NULL DEFAULT 0,
            move_in_at          TIMESTAMPTZ     NOT NULL,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_leases_rent_gt_0 CHECK (monthly_rent > 0),
            CONSTRAINT ck_leases_deposit_gte_0 CHECK (security_deposit >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_leases_listing ON leases (listing_id);")
    op.execute("""
        CREATE TRIGGER trg_leases_updated_at
        BEFORE UPDATE ON leases
        FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS leases CASCADE;")
    op.execute("DROP TABLE IF EXISTS listings CASCADE;")
