"""004: create obligation_ledger_entries table

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE obligation_ledger_entries (
            id                  BIGSERIAL       PRIMARY KEY,
            obligation_id       UUID            NOT NULL REFERENCES obligations(id),
            amount              BIGINT          NOT NULL,
            periods_covered     INT             NOT NULL,
            external_payment_id VARCHAR(64)     NOT NULL,
            external_order_id   VARCHAR(64)     NOT NULL,
            applied_at          TIMESTAMPTZ     NOT NULL,
            valid_until         TIMESTAMPTZ     NOT NULL,
            convenience_fee_minor BIGINT      NOT NULL DEFAULT 0,
            entry_status        VARCHAR(20)     NOT NULL DEFAULT 'completed',
            CONSTRAINT uq_ledger_external_payment UNIQUE (external_payment_id),
            CONSTRAINT ck_ledger_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_ledger_periods_gte_1 CHECK (periods_covered >= 1),
            CONSTRAINT ck_ledger_fee_within_amount
                CHECK (convenience_fee_minor >= 0 AND convenience_fee_minor <= amount),
            CONSTRAINT ck_ledger_entry_status CHECK (entry_status IN ('completed'))
        );
    """)
    op.execute("""
        CREATE INDEX idx_obligation_ledger_obligation
        ON obligation_ledger_entries (obligation_id, id DESC);
    """)
    op.execute("""
        CREATE TRIGGER trg_obligation_ledger_append_only
        BEFORE UPDATE OR DELETE ON obligation_ledger_entries
        FOR EACH ROW EXECUTE FUNCTION fn_reject_ledger_mutation();
    """)
    op.execute(
        "COMMENT ON TABLE obligation_ledger_entries IS "
        "'Payment ledger: append-only, never updated or deleted; amounts in minor units';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS obligation_ledger_entries CASCADE;")
