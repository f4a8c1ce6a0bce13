from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stockbook.db.base import Base


class InventoryLedger(Base):
    """Append-only stock movements.

    The sum of ``qty_delta`` for a product equals its on-hand quantity. Deleting a
    sale or purchase appends a compensating row instead of removing the original.
    """

    __tablename__ = "inventory_ledger"
    __table_args__ = (
        CheckConstraint("qty_delta <> 0", name="ck_inventory_ledger_qty_delta_nonzero"),
        Index("ix_inventory_ledger_business_created_at", "business_id", "created_at"),
        Index(
            "ix_inventory_ledger_business_product_created_at",
            "business_id",
            "product_id",
            "created_at",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    business_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("businesses.id"), nullable=False, index=True
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id"), nullable=False, index=True
    )

    qty_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(30), nullable=False)
    # id of the sale or purchase that caused the movement
    reference_id: Mapped[Optional[str]] = mapped_column(String(36))
    note: Mapped[Optional[str]] = mapped_column(String(255))
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
