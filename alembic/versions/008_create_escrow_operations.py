"""008: create escrow_operations table

Revision ID: 008
Revises: 007
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE escrow_operations (
            offer_id        VARCHAR(32)     NOT NULL,
            user_id         VARCHAR(64)     NOT NULL,
            operation       VARCHAR(10)     NOT NULL,
            amount          BIGINT          NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            PRIMARY KEY (offer_id, user_id, operation),
            CONSTRAINT ck_escrow_operation CHECK (operation IN ('HOLD', 'RELEASE', 'REFUND')),
            CONSTRAINT ck_escrow_amount_gt_0 CHECK (amount > 0)
        );
    """)
    op.execute(
        "COMMENT ON TABLE escrow_operations IS 'Idempotency keys: each custody movement applies once';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS escrow_operations CASCADE;")
