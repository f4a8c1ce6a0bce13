from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stockbook.db.base import Base


class Supplier(Base):
    __tablename__ = "suppliers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    business_id: Mapped[str] = mapped_column(String(36), ForeignKey("businesses.id"), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_types: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # "produce, dairy"
    purchase_days: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)  # "Mon, Thu"

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_suppliers_business_name", "business_id", "name"),
    )
