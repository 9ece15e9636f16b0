"""007: create transactions and transaction_timeline tables

Revision ID: 007
Revises: 006
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transactions (
            id              VARCHAR(32)     PRIMARY KEY,
            offer_id        VARCHAR(32)     NOT NULL REFERENCES offers (id),
            buyer_id        VARCHAR(64)     NOT NULL,
            seller_id       VARCHAR(64)     NOT NULL,
            item_id         VARCHAR(32)     NOT NULL,
            amount          BIGINT          NOT NULL,
            platform_fee    BIGINT          NOT NULL,
            status          VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_transactions_offer UNIQUE (offer_id),
            CONSTRAINT ck_transactions_status CHECK (
                status IN ('PENDING', 'COMPLETED', 'CANCELLED', 'REFUNDED')
            ),
            CONSTRAINT ck_transactions_fee CHECK (platform_fee >= 0 AND platform_fee <= amount)
        );
    """)
    op.execute("CREATE INDEX idx_transactions_buyer ON transactions (buyer_id, id DESC);")
    op.execute("CREATE INDEX idx_transactions_seller ON transactions (seller_id, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_transactions_updated_at
            BEFORE UPDATE ON transactions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE transaction_timeline (
            id              BIGSERIAL       PRIMARY KEY,
            transaction_id  VARCHAR(32)     NOT NULL REFERENCES transactions (id),
            status          VARCHAR(20)     NOT NULL,
            note            VARCHAR(500)    NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_timeline_txn ON transaction_timeline (transaction_id, id);")
    op.execute("COMMENT ON TABLE transaction_timeline IS 'Append-only, never updated or deleted';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transaction_timeline CASCADE;")
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
