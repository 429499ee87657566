from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.base import Base


class StockLedgerEntry(Base):
    """
    One row per quantity mutation. Rows are append-only; corrections are new entries.
    Location-tagged rows form the location history (transfer legs carry one).
    """
    __tablename__ = "stock_ledger_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    item_id: Mapped[str] = mapped_column(String(36), ForeignKey("stock_items.id"), nullable=False, index=True)

    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # "add", "remove", "adjust", "in", "out"
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity_before: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    item_version: Mapped[int] = mapped_column(Integer, nullable=False)

    location_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("locations.id"), nullable=True, index=True
    )
    actor_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    note: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    reference_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ux_stock_ledger_entries_item_version", "item_id", "item_version", unique=True),
        Index("ix_stock_ledger_entries_item_created_at", "item_id", "created_at"),
        Index("ix_stock_ledger_entries_location_created_at", "location_id", "created_at"),
    )
