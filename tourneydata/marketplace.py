"""Marketplace orders paid for with platform tokens."""

from __future__ import annotations

from typing import Any

from sqlalchemy import Float, Integer, String, func, select
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from tourneydata.db import Base, Database


class _BigInteger(TypeDecorator):
    """Arbitrary-size integers kept as decimal text."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value: Any, dialect: Any) -> int | None:
        if value is None:
            return None
        return int(value)


class MarketplaceOrderRecord(Base):
    __tablename__ = "marketplace_order_records"

    insert_seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String, default="")
    poa_addr: Mapped[str] = mapped_column(String, default="", index=True)
    token_amount: Mapped[int | None] = mapped_column(_BigInteger, nullable=True)
    token_type: Mapped[str] = mapped_column(String, default="")
    purchase_currency: Mapped[str] = mapped_column(String, default="")
    purchase_currency_amount: Mapped[float] = mapped_column(Float, default=0.0)
    product_id: Mapped[str] = mapped_column(String, default="")
    country: Mapped[str] = mapped_column(String, default="")
    native_currency_price: Mapped[float] = mapped_column(Float, default=0.0)
    native_currency_name: Mapped[str] = mapped_column(String, default="")
    brand_name: Mapped[str] = mapped_column(String, default="")
    statue: Mapped[str] = mapped_column(String, default="")
    product_detail: Mapped[str] = mapped_column(String, default="")

    def to_dict(self) -> dict[str, Any]:
        return {
            "orderId": self.order_id,
            "poaAddr": self.poa_addr,
            "tokenAmount": self.token_amount,
            "tokenType": self.token_type,
            "purchaseCurrency": self.purchase_currency,
            "purchaseCurrencyAmount": self.purchase_currency_amount,
            "productId": self.product_id,
            "country": self.country,
            "nativeCurrencyPrice": self.native_currency_price,
            "nativeCurrencyName": self.native_currency_name,
            "brandName": self.brand_name,
            "statue": self.statue,
            "productDetail": self.product_detail,
        }


class MarketplaceHandler:
    """Reads an address's marketplace orders."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def fetch_records(
        self, public_address: str, page: int, per_page: int
    ) -> list[MarketplaceOrderRecord]:
        """One page of an address's orders, most recent first."""
        statement = select(MarketplaceOrderRecord)
        if public_address:
            statement = statement.where(MarketplaceOrderRecord.poa_addr == public_address)
        statement = statement.order_by(MarketplaceOrderRecord.insert_seq.desc())
        offset = (page - 1) * per_page
        if per_page > 0:
            statement = statement.limit(per_page)
        if offset > 0:
            statement = statement.offset(offset)
        with self.db.session() as session:
            return list(session.execute(statement).scalars())

    def count_record_pages(self, public_address: str, per_page: int) -> int:
        """Number of pages of ``per_page`` orders held by an address."""
        if per_page <= 0:
            raise ValueError("per_page must be positive")
        with self.db.session() as session:
            count = session.execute(
                select(func.count())
                .select_from(MarketplaceOrderRecord)
                .where(MarketplaceOrderRecord.poa_addr == public_address)
            ).scalar_one()
        return -(-count // per_page)