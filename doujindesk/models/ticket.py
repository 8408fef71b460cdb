"""
Ticketing models: catalog entries, purchases and the gate scan log.

Key design decisions:
- `available_quantity` is denormalized on the ticket type and guarded by a
  `version` column for optimistic locking
- Purchase totals are frozen at creation time; they are never recomputed
- `ticket_validations` is append-only; a scan of an unknown code keeps the raw
  code in `scanned_code` with a NULL `ticket_id`
"""

from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    Numeric,
    String,
    Text,
    Boolean,
    Date,
    DateTime,
    JSON,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from doujindesk.db.base import Base, TimestampMixin, utcnow


class TicketType(Base, TimestampMixin):
    __tablename__ = "ticket_types"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=False, default="")
    price_idr = Column(BigInteger, nullable=False)
    price_usd = Column(Numeric(10, 2), nullable=False)
    category = Column(String(20), nullable=False)  # weekend, single_day, vip, special
    day = Column(String(20), nullable=True)  # saturday, sunday, both
    benefits = Column(JSON, nullable=False, default=list)
    max_quantity = Column(Integer, nullable=False)
    available_quantity = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    early_bird_price_idr = Column(BigInteger, nullable=True)
    early_bird_price_usd = Column(Numeric(10, 2), nullable=True)
    early_bird_end_date = Column(Date, nullable=True)
    age_restriction = Column(String(20), nullable=True)  # adult, all_ages
    requires_id = Column(Boolean, nullable=False, default=False)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    purchases = relationship("TicketPurchase", back_populates="ticket_type", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("available_quantity >= 0", name="check_ticket_available_non_negative"),
        CheckConstraint("available_quantity <= max_quantity", name="check_ticket_available_lte_max"),
        CheckConstraint("price_idr >= 0", name="check_ticket_price_idr_non_negative"),
        CheckConstraint("price_usd >= 0", name="check_ticket_price_usd_non_negative"),
        CheckConstraint(
            "category IN ('weekend', 'single_day', 'vip', 'special')",
            name="check_ticket_category",
        ),
    )

    def __repr__(self) -> str:
        return f"<TicketType(id={self.id}, available={self.available_quantity}/{self.max_quantity})>"


class TicketPurchase(Base, TimestampMixin):
    __tablename__ = "ticket_purchases"

    id = Column(String(64), primary_key=True)
    ticket_type_id = Column(String(64), ForeignKey("ticket_types.id", ondelete="SET NULL"), nullable=True, index=True)
    attendee_name = Column(String(255), nullable=False)
    attendee_email = Column(String(255), nullable=False, index=True)
    attendee_phone = Column(String(50), nullable=False, default="")
    attendee_age = Column(Integer, nullable=True)
    attendee_id_number = Column(String(100), nullable=True)
    quantity = Column(Integer, nullable=False)
    total_price_idr = Column(BigInteger, nullable=False)
    total_price_usd = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="IDR")
    discount_type = Column(String(20), nullable=True)  # pwd, child, bulk
    discount_amount = Column(Numeric(14, 2), nullable=True)
    discount_percentage = Column(Integer, nullable=True)
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(50), nullable=True)
    payment_reference = Column(String(100), nullable=True)
    qr_code = Column(Text, nullable=False, unique=True)
    rfid_code = Column(String(12), nullable=True, unique=True)
    purchase_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    is_used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    entry_gate = Column(String(50), nullable=True)
    special_access = Column(JSON, nullable=False, default=list)

    ticket_type = relationship("TicketType", back_populates="purchases")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_purchase_quantity_positive"),
        CheckConstraint("currency IN ('IDR', 'USD')", name="check_purchase_currency"),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed', 'refunded')",
            name="check_purchase_payment_status",
        ),
        Index("ix_ticket_purchases_status_date", "payment_status", "purchase_date"),
    )

    @property
    def discount_applied(self) -> dict | None:
        if self.discount_type is None:
            return None
        return {
            "type": self.discount_type,
            "amount": self.discount_amount,
            "percentage": self.discount_percentage,
        }

    def __repr__(self) -> str:
        return f"<TicketPurchase(id={self.id}, type={self.ticket_type_id}, status={self.payment_status})>"


class TicketValidation(Base):
    __tablename__ = "ticket_validations"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(String(64), ForeignKey("ticket_purchases.id", ondelete="SET NULL"), nullable=True, index=True)
    scanned_code = Column(Text, nullable=False)
    validation_type = Column(String(20), nullable=False, default="entry")
    gate_id = Column(String(50), nullable=False, index=True)
    staff_id = Column(String(50), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    is_valid = Column(Boolean, nullable=False)
    error_reason = Column(String(255), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "validation_type IN ('entry', 'exit', 'area_access')",
            name="check_validation_type",
        ),
    )

    def __repr__(self) -> str:
        return f"<TicketValidation(id={self.id}, ticket={self.ticket_id}, valid={self.is_valid})>"
