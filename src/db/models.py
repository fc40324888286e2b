from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


class AmountAsString(TypeDecorator):
    """Arbitrary-size integers; 256-bit balances do not fit SQLite's INTEGER."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: int | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> int | None:
        if value is None:
            return None
        return int(value)


class Base(DeclarativeBase):
    pass


class AdministrationOrm(Base):
    __tablename__ = "administration"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    address: Mapped[str] = mapped_column(String, nullable=False)
    owner_id: Mapped[str] = mapped_column(String, nullable=False)
    fee_bps: Mapped[int] = mapped_column(Integer, nullable=False)


class WhitelistedAssetOrm(Base):
    __tablename__ = "whitelisted_assets"

    asset_id: Mapped[str] = mapped_column(String, primary_key=True)


class BalanceEntryOrm(Base):
    __tablename__ = "balance_entries"

    holder_id: Mapped[str] = mapped_column(String, primary_key=True)
    asset_id: Mapped[str] = mapped_column(String, primary_key=True)
    amount: Mapped[int] = mapped_column(AmountAsString, nullable=False)


class ExternalBalanceOrm(Base):
    __tablename__ = "external_balances"

    account_id: Mapped[str] = mapped_column(String, primary_key=True)
    asset_id: Mapped[str] = mapped_column(String, primary_key=True)
    amount: Mapped[int] = mapped_column(AmountAsString, nullable=False)


class LedgerEventOrm(Base):
    __tablename__ = "ledger_events"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    caller: Mapped[str] = mapped_column(String, nullable=False)

    legs: Mapped[list["LedgerLegOrm"]] = relationship(
        cascade="all, delete-orphan", back_populates="event", lazy="selectin", order_by="LedgerLegOrm.position"
    )
    transfers: Mapped[list["TransferOrm"]] = relationship(
        cascade="all, delete-orphan", back_populates="event", lazy="selectin", order_by="TransferOrm.position"
    )


class LedgerLegOrm(Base):
    __tablename__ = "ledger_legs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    event_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("ledger_events.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    holder_id: Mapped[str] = mapped_column(String, nullable=False)
    asset_id: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[int] = mapped_column(AmountAsString, nullable=False)
    is_fee: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    event: Mapped[LedgerEventOrm] = relationship(back_populates="legs")


class TransferOrm(Base):
    __tablename__ = "transfers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    event_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("ledger_events.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    direction: Mapped[str] = mapped_column(String, nullable=False)
    asset_id: Mapped[str] = mapped_column(String, nullable=False)
    account_id: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[int] = mapped_column(AmountAsString, nullable=False)

    event: Mapped[LedgerEventOrm] = relationship(back_populates="transfers")
