"""
Financial ledger models: transactions, refund requests and exchange rates.

Transactions are independent of ticket purchases; `ticket_id` and
`circle_id` are informational references with no foreign keys.
"""

from sqlalchemy import (
    Column,
    Integer,
    Numeric,
    String,
    DateTime,
    JSON,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
)

from doujindesk.db.base import Base, TimestampMixin, utcnow


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id = Column(String(64), primary_key=True)
    type = Column(String(20), nullable=False)  # payment, refund, fee, commission
    amount = Column(Numeric(16, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    description = Column(String(500), nullable=False, default="")
    reference = Column(String(100), nullable=False, default="")
    circle_id = Column(String(64), nullable=True, index=True)
    ticket_id = Column(String(64), nullable=True, index=True)
    payment_method = Column(String(50), nullable=True)
    exchange_rate = Column(Numeric(16, 8), nullable=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=False, default=dict)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_transaction_amount_non_negative"),
        CheckConstraint("currency IN ('IDR', 'USD')", name="check_transaction_currency"),
        CheckConstraint(
            "type IN ('payment', 'refund', 'fee', 'commission')",
            name="check_transaction_type",
        ),
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed', 'cancelled')",
            name="check_transaction_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, type={self.type}, {self.amount} {self.currency}, status={self.status})>"


class RefundRequest(Base):
    __tablename__ = "refund_requests"

    id = Column(String(64), primary_key=True)
    transaction_id = Column(String(64), ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(16, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    reason = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    requested_by = Column(String(100), nullable=False)
    requested_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    processed_by = Column(String(100), nullable=True)
    notes = Column(String(500), nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="check_refund_amount_positive"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'processed')",
            name="check_refund_status",
        ),
    )


class ExchangeRate(Base):
    __tablename__ = "exchange_rates"

    id = Column(Integer, primary_key=True, index=True)
    from_currency = Column(String(3), nullable=False)
    to_currency = Column(String(3), nullable=False)
    rate = Column(Numeric(20, 10), nullable=False)
    source = Column(String(100), nullable=True)
    last_updated = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("from_currency", "to_currency", name="uq_exchange_rate_pair"),
        CheckConstraint("rate > 0", name="check_exchange_rate_positive"),
    )
