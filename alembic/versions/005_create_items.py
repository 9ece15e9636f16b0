"""005: create items table

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE items (
            id              VARCHAR(32)     PRIMARY KEY,
            owner_id        VARCHAR(64)     NOT NULL,
            title           VARCHAR(200)    NOT NULL,
            status          VARCHAR(20)     NOT NULL DEFAULT 'AVAILABLE',
            price           BIGINT,
            trade_value     BIGINT,
            allow_buy       BOOLEAN         NOT NULL DEFAULT TRUE,
            allow_trade     BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_items_status CHECK (status IN ('AVAILABLE', 'RESERVED', 'SOLD')),
            CONSTRAINT ck_items_price_gte_0 CHECK (price IS NULL OR price >= 0),
            CONSTRAINT ck_items_trade_value_gte_0 CHECK (trade_value IS NULL OR trade_value >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_items_owner ON items (owner_id);")
    op.execute("""
        CREATE TRIGGER trg_items_updated_at
            BEFORE UPDATE ON items
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE items IS 'Listings as seen by settlement; rows owned by the listing surface';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS items CASCADE;")
