# models.py
# Role: SQLAlchemy ORM models for the ReportHub domain.
#       Zone -> Group -> Church hierarchy, departments with their product catalogue
#       and campaign categories, orders (transactions + line items), payments,
#       financial years, and the audit trail of CSV uploads.

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from db import Base


def utc_now() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# -------------------------------------------------------------------
# Enumerated values (stored as plain strings)
# -------------------------------------------------------------------

USER_ROLES = ("SUPER_ADMIN", "ZONE_ADMIN", "GROUP_ADMIN", "CHURCH_USER")
ADMIN_ROLES = ("SUPER_ADMIN", "ZONE_ADMIN")

PAYMENT_METHODS = ("BANK_TRANSFER", "CASH", "ESPEES")
PAYMENT_PURPOSES = ("PRINTING", "SPONSORSHIP")

TRANSACTION_TYPE_PURCHASE = "PURCHASE"

UPLOAD_TYPES = ("TRANSACTION", "ORDER")
UPLOAD_STATUSES = ("PROCESSING", "SUCCESS", "PARTIAL", "FAILED", "ROLLED_BACK")


# -------------------------------------------------------------------
# Organisation hierarchy
# -------------------------------------------------------------------

class Zone(Base):
    """Top of the hierarchy. Carries the default currency for its churches."""

    __tablename__ = "zones"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, unique=True)
    currency = Column(String(10), nullable=False, default="GBP")
    created_at = Column(DateTime, nullable=False, default=utc_now)

    groups = relationship("Group", back_populates="zone", order_by="Group.name")


class Group(Base):
    __tablename__ = "groups"
    __table_args__ = (UniqueConstraint("zone_id", "name", name="uq_groups_zone_name"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    zone = relationship("Zone", back_populates="groups")
    churches = relationship("Church", back_populates="group", order_by="Church.name")


class Church(Base):
    """A church belongs to exactly one group."""

    __tablename__ = "churches"
    __table_args__ = (UniqueConstraint("group_id", "name", name="uq_churches_group_name"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    group = relationship("Group", back_populates="churches")
    transactions = relationship("Transaction", back_populates="church")
    payments = relationship("Payment", back_populates="church")


# -------------------------------------------------------------------
# Departments, catalogue and campaigns
# -------------------------------------------------------------------

class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    product_types = relationship(
        "ProductType", back_populates="department", order_by="ProductType.name"
    )
    campaign_categories = relationship("CampaignCategory", back_populates="department")


class ProductType(Base):
    """
    A product in a department's catalogue.

    `unit_price` is the live catalogue price. Line items keep their own copy of
    the price they were created with (see TransactionLineItem).
    """

    __tablename__ = "product_types"
    __table_args__ = (
        UniqueConstraint("department_id", "name", name="uq_product_types_department_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False, index=True)
    unit_price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(10), nullable=False, default="GBP")
    created_at = Column(DateTime, nullable=False, default=utc_now)

    department = relationship("Department", back_populates="product_types")
    line_items = relationship("TransactionLineItem", back_populates="product_type")


class CampaignCategory(Base):
    __tablename__ = "campaign_categories"
    __table_args__ = (
        UniqueConstraint(
            "department_id", "normalized_name", name="uq_campaign_categories_department_name"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    normalized_name = Column(String(200), nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False, index=True)
    auto_generated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    department = relationship("Department", back_populates="campaign_categories")


# -------------------------------------------------------------------
# Users
# -------------------------------------------------------------------

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="CHURCH_USER")

    # Optional scope of the account within the hierarchy
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=True)
    church_id = Column(Integer, ForeignKey("churches.id"), nullable=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)

    zone = relationship("Zone")
    group = relationship("Group")
    church = relationship("Church")
    department = relationship("Department")


# -------------------------------------------------------------------
# Orders and payments
# -------------------------------------------------------------------

class Transaction(Base):
    """A purchase (order) placed by a church. Priced through its line items."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    church_id = Column(Integer, ForeignKey("churches.id"), nullable=False, index=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False, index=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    upload_history_id = Column(Integer, ForeignKey("upload_history.id"), nullable=True, index=True)

    transaction_date = Column(DateTime, nullable=False, index=True)
    transaction_type = Column(String(20), nullable=False, default=TRANSACTION_TYPE_PURCHASE)
    currency = Column(String(10), nullable=False, default="GBP")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    church = relationship("Church", back_populates="transactions")
    uploader = relationship("User")
    line_items = relationship(
        "TransactionLineItem",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionLineItem.id",
    )


class TransactionLineItem(Base):
    """
    One product/quantity/price entry within a Transaction.

    total_amount = quantity * unit_price at creation time. It is only
    recomputed by the price sync job.
    """

    __tablename__ = "transaction_line_items"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, index=True)
    product_type_id = Column(Integer, ForeignKey("product_types.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)

    transaction = relationship("Transaction", back_populates="line_items")
    product_type = relationship("ProductType", back_populates="line_items")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    church_id = Column(Integer, ForeignKey("churches.id"), nullable=False, index=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False, index=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    upload_history_id = Column(Integer, ForeignKey("upload_history.id"), nullable=True, index=True)

    payment_date = Column(DateTime, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(10), nullable=False, default="GBP")
    payment_method = Column(String(20), nullable=False, default="BANK_TRANSFER")
    for_purpose = Column(String(20), nullable=False)
    reference_number = Column(String(100), nullable=True)

    campaign_category_id = Column(Integer, ForeignKey("campaign_categories.id"), nullable=True)
    # Free-text type as it appeared in the upload
    campaign_label = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    church = relationship("Church", back_populates="payments")
    campaign_category = relationship("CampaignCategory")


# -------------------------------------------------------------------
# Financial years and upload audit
# -------------------------------------------------------------------

class FinancialYear(Base):
    """
    Fiscal year Dec 1 -> Nov 30, labelled by its ending calendar year.

    At most one row has is_current = true (partial unique index below).
    """

    __tablename__ = "financial_years"
    __table_args__ = (
        Index(
            "uq_financial_years_single_current",
            "is_current",
            unique=True,
            sqlite_where=text("is_current = 1"),
            postgresql_where=text("is_current"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    label = Column(String(10), nullable=False, unique=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    is_current = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)


class UploadHistory(Base):
    """Audit row for one CSV import, including its final status and error log."""

    __tablename__ = "upload_history"

    id = Column(Integer, primary_key=True, index=True)
    file_name = Column(String(255), nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    uploaded_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    status = Column(String(20), nullable=False, default="PROCESSING")
    upload_type = Column(String(20), nullable=False, default="TRANSACTION")
    records_processed = Column(Integer, nullable=False, default=0)
    error_log = Column(Text, nullable=True)
    rolled_back_at = Column(DateTime, nullable=True)

    transactions = relationship("Transaction")
    payments = relationship("Payment")
