"""006: create offers table

Revision ID: 006
Revises: 005
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE offers (
            id                      VARCHAR(32)     PRIMARY KEY,
            buyer_id                VARCHAR(64)     NOT NULL,
            seller_id               VARCHAR(64)     NOT NULL,
            item_id                 VARCHAR(32)     NOT NULL REFERENCES items (id),
            kind                    VARCHAR(10)     NOT NULL,
            proposed_value          BIGINT          NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            offered_item_name       VARCHAR(200),
            description             VARCHAR(2000),
            buyer_confirmed         BOOLEAN         NOT NULL DEFAULT FALSE,
            seller_confirmed        BOOLEAN         NOT NULL DEFAULT FALSE,
            escrow_amount           BIGINT          NOT NULL DEFAULT 0,
            seller_escrow_amount    BIGINT          NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_offers_kind CHECK (kind IN ('PURCHASE', 'TRADE')),
            CONSTRAINT ck_offers_status CHECK (
                status IN ('PENDING', 'PENDING_PAYMENT', 'ACCEPTED', 'COMPLETED', 'REJECTED')
            ),
            CONSTRAINT ck_offers_no_self_trade CHECK (buyer_id <> seller_id),
            CONSTRAINT ck_offers_proposed_value_gte_0 CHECK (proposed_value >= 0),
            CONSTRAINT ck_offers_escrow_gte_0 CHECK (escrow_amount >= 0 AND seller_escrow_amount >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_offers_buyer ON offers (buyer_id, id DESC);")
    op.execute("CREATE INDEX idx_offers_seller ON offers (seller_id, id DESC);")
    op.execute("CREATE INDEX idx_offers_item ON offers (item_id);")
    op.execute("""
        CREATE TRIGGER trg_offers_updated_at
            BEFORE UPDATE ON offers
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS offers CASCADE;")
