"""Item domain model: the settlement engine's view of a listing."""

from dataclasses import dataclass
from datetime import datetime

from src.mp_common.enums import ItemStatus


@dataclass
class Item:
    id: str
    owner_id: str
    title: str
    status: str = ItemStatus.AVAILABLE.value
    price: int | None = None         # cents, listed cash price (None: not for sale)
    trade_value: int | None = None   # cents, declared value when traded
    allow_buy: bool = True
    allow_trade: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_available(self) -> bool:
        return self.status == ItemStatus.AVAILABLE.value
