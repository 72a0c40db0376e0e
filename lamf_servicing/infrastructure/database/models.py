"""SQLAlchemy ORM models for loans, schedules, collateral and margin calls"""

import uuid
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

# Rupee amounts to the paisa; units and NAVs to four places
Money = Numeric(16, 2)
Quantity = Numeric(18, 4)


class LoanProduct(Base):
    """Loan product carrying the LTV policy"""

    __tablename__ = "loan_product"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    interest_rate_percent = Column(Numeric(6, 3), nullable=False)
    max_ltv_percent = Column(Numeric(6, 2), nullable=True)
    margin_call_threshold = Column(Numeric(6, 2), nullable=True)
    liquidation_threshold = Column(Numeric(6, 2), nullable=True)
    foreclosure_charge_percent = Column(Numeric(6, 3), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    loans = relationship("Loan", back_populates="product")


class Loan(Base):
    """Disbursed loan; total_outstanding is the authoritative balance"""

    __tablename__ = "loan"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_number = Column(Text, nullable=False, unique=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("loan_product.id"), nullable=True, index=True)
    principal_amount = Column(Money, nullable=False)
    interest_rate = Column(Numeric(6, 3), nullable=False)
    tenure_months = Column(Integer, nullable=False)
    emi_amount = Column(Money, nullable=False)
    outstanding_principal = Column(Money, nullable=False)
    outstanding_interest = Column(Money, nullable=False, default=0)
    total_outstanding = Column(Money, nullable=False)
    disbursement_date = Column(Date, nullable=False)
    maturity_date = Column(Date, nullable=False)
    current_ltv = Column(Numeric(20, 4), nullable=True)
    status = Column(Text, nullable=False, default="ACTIVE", index=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    # Optimistic concurrency: concurrent writers to the same loan raise StaleDataError
    __mapper_args__ = {"version_id_col": version}

    product = relationship("LoanProduct", back_populates="loans")
    installments = relationship(
        "EmiInstallment",
        back_populates="loan",
        order_by="EmiInstallment.sequence_no",
        cascade="all, delete-orphan",
    )
    collaterals = relationship("Collateral", back_populates="loan")
    margin_calls = relationship("MarginCall", back_populates="loan", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="loan", cascade="all, delete-orphan")


class EmiInstallment(Base):
    """One period of a loan's EMI schedule"""

    __tablename__ = "emi_installment"
    __table_args__ = (UniqueConstraint("loan_id", "sequence_no", name="uq_loan_installment_seq"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(UUID(as_uuid=True), ForeignKey("loan.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence_no = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    emi_amount = Column(Money, nullable=False)
    principal_component = Column(Money, nullable=False)
    interest_component = Column(Money, nullable=False)
    paid_amount = Column(Money, nullable=False, default=0)
    paid_date = Column(Date, nullable=True)
    status = Column(Text, nullable=False, default="PENDING")

    loan = relationship("Loan", back_populates="installments")


class Payment(Base):
    """Append-only payment ledger"""

    __tablename__ = "payment"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(UUID(as_uuid=True), ForeignKey("loan.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    payment_date = Column(Date, nullable=False)
    payment_mode = Column(Text, nullable=False)
    transaction_ref = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="SUCCESS")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    loan = relationship("Loan", back_populates="payments")


class Collateral(Base):
    """Mutual-fund position; current_value only changes through revaluation"""

    __tablename__ = "collateral"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(UUID(as_uuid=True), ForeignKey("loan.id"), nullable=True, index=True)
    fund_name = Column(Text, nullable=False)
    scheme_code = Column(Text, nullable=True, index=True)
    scheme_type = Column(Text, nullable=False, default="EQUITY")
    units = Column(Quantity, nullable=False)
    purchase_nav = Column(Quantity, nullable=False)
    current_nav = Column(Quantity, nullable=False)
    current_value = Column(Numeric(24, 8), nullable=False)
    pledge_status = Column(Text, nullable=False, default="PENDING", index=True)
    last_valuation_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    loan = relationship("Loan", back_populates="collaterals")


class MarginCall(Base):
    """Margin call raised when LTV breaches the product threshold"""

    __tablename__ = "margin_call"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(UUID(as_uuid=True), ForeignKey("loan.id", ondelete="CASCADE"), nullable=False, index=True)
    trigger_ltv = Column(Numeric(20, 4), nullable=False)
    current_ltv = Column(Numeric(20, 4), nullable=False)
    shortfall_amount = Column(Money, nullable=False)
    status = Column(Text, nullable=False, default="PENDING", index=True)
    due_date = Column(DateTime(timezone=True), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    top_up_amount = Column(Money, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    loan = relationship("Loan", back_populates="margin_calls")


class OutboundNotification(Base):
    """Notification outbox with delivery tracking"""

    __tablename__ = "outbound_notification"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    kind = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False)
    target_url = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
