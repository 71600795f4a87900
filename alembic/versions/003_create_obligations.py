"""003: create obligations table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE obligations (
            id                      UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            kind                    VARCHAR(20)     NOT NULL,
            resource_id             VARCHAR(64)     NOT NULL,
            rate_per_period         BIGINT          NOT NULL,
            due_at                  TIMESTAMPTZ     NOT NULL,
            status                  VARCHAR(20)     NOT NULL,
            grace_period_ends_at    TIMESTAMPTZ,
            suspended_at            TIMESTAMPTZ,
            suspension_reason       VARCHAR(200),
            last_payment_at         TIMESTAMPTZ,
            version                 BIGINT          NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_obligations_kind_resource UNIQUE (kind, resource_id),
            CONSTRAINT ck_obligations_kind CHECK (kind IN ('subscription', 'lease')),
            CONSTRAINT ck_obligations_status CHECK (
                (kind = 'subscription' AND status IN ('active', 'due', 'overdue', 'suspended'))
                OR
                (kind = 'lease' AND status IN ('active', 'pending', 'overdue', 'terminated'))
            ),
            CONSTRAINT ck_obligations_rate_gt_0 CHECK (rate_per_period > 0)
        );
    """)
    # Sweep scan: unsuspended obligations ordered by due date
    op.execute("""
        CREATE INDEX idx_obligations_sweep
        ON obligations (due_at, id)
        WHERE suspended_at IS NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_obligations_updated_at
        BEFORE UPDATE ON obligations
        FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS obligations CASCADE;")
