"""
Circle (vendor) application model.

A circle row is created when the application form is submitted and is
afterwards only touched by the review action (status, notes, booth number).
"""

from sqlalchemy import Column, Integer, BigInteger, String, Text, Boolean, JSON, Index, CheckConstraint

from doujindesk.db.base import Base, TimestampMixin


class Circle(Base, TimestampMixin):
    __tablename__ = "circles"

    id = Column(String(64), primary_key=True)
    event_id = Column(String(64), nullable=False, index=True)
    circle_code = Column(String(20), nullable=False, unique=True)
    circle_name = Column(String(255), nullable=False)
    pen_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    country = Column(String(100), nullable=True)
    genre = Column(String(100), nullable=True)
    fandom = Column(String(255), nullable=True)
    rating = Column(String(10), nullable=False, default="all_ages")
    description = Column(Text, nullable=True)
    website = Column(String(500), nullable=True)
    twitter = Column(String(100), nullable=True)
    instagram = Column(String(100), nullable=True)
    pixiv = Column(String(100), nullable=True)
    circle_cut_file_url = Column(String(1000), nullable=True)
    sample_works_images = Column(JSON, nullable=False, default=list)
    space_preference = Column(String(20), nullable=False)
    additional_table = Column(Boolean, nullable=False, default=False)
    additional_chair = Column(Boolean, nullable=False, default=False)
    additional_power = Column(Boolean, nullable=False, default=False)
    exhibitor_passes = Column(Integer, nullable=False, default=2)
    total_amount = Column(BigInteger, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="IDR")
    payment_status = Column(String(20), nullable=False, default="pending")
    application_status = Column(String(20), nullable=False, default="pending")
    booth_number = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("rating IN ('all_ages', 'r15', 'r18')", name="check_circle_rating"),
        CheckConstraint(
            "application_status IN ('pending', 'under_review', 'accepted', 'rejected', 'waitlisted')",
            name="check_circle_application_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'cancelled')",
            name="check_circle_payment_status",
        ),
        Index("ix_circles_event_status", "event_id", "application_status"),
    )

    def __repr__(self) -> str:
        return f"<Circle(id={self.id}, name={self.circle_name}, status={self.application_status})>"
