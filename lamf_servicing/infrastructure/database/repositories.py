"""Data access layer for servicing entities"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from lamf_servicing.infrastructure.database.models import (
    Collateral,
    EmiInstallment,
    Loan,
    LoanProduct,
    MarginCall,
    OutboundNotification,
    Payment,
)
from lamf_servicing.domain.models import (
    LoanStatus,
    MarginCallDecision,
    MarginCallStatus,
    PledgeStatus,
    ScheduledInstallment,
)


def _apply(entity: Any, fields: Dict[str, Any]) -> None:
    for name, value in fields.items():
        if not hasattr(entity, name):
            raise AttributeError(f"{type(entity).__name__} has no field {name!r}")
        setattr(entity, name, value)


class ProductRepository:
    """Repository for loan products (policy source)"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields) -> LoanProduct:
        product = LoanProduct(**fields)
        self.db.add(product)
        self.db.flush()
        return product

    def get(self, product_id: uuid.UUID) -> Optional[LoanProduct]:
        return self.db.get(LoanProduct, product_id)


class LoanRepository:
    """Repository for loans"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields) -> Loan:
        loan = Loan(**fields)
        self.db.add(loan)
        self.db.flush()  # Get ID without committing
        return loan

    def get(self, loan_id: uuid.UUID, for_update: bool = False) -> Optional[Loan]:
        """Fetch a loan; ``for_update`` takes a row lock for the rest of the transaction"""
        query = self.db.query(Loan).filter(Loan.id == loan_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def update(self, loan: Loan, **fields) -> Loan:
        _apply(loan, fields)
        self.db.flush()
        return loan

    def list_active(self) -> List[Loan]:
        return (
            self.db.query(Loan)
            .filter(Loan.status == LoanStatus.ACTIVE.value)
            .order_by(Loan.created_at, Loan.loan_number)
            .all()
        )


class InstallmentRepository:
    """Repository for EMI schedule rows"""

    def __init__(self, db: Session):
        self.db = db

    def create_many(self, loan_id: uuid.UUID, schedule: List[ScheduledInstallment]) -> List[EmiInstallment]:
        rows = [
            EmiInstallment(
                loan_id=loan_id,
                sequence_no=inst.sequence_no,
                due_date=inst.due_date,
                emi_amount=inst.emi_amount,
                principal_component=inst.principal_component,
                interest_component=inst.interest_component,
                paid_amount=Decimal("0"),
                status="PENDING",
            )
            for inst in schedule
        ]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def list_by_loan(self, loan_id: uuid.UUID) -> List[EmiInstallment]:
        """Installments in ascending sequence order (oldest due first)"""
        return (
            self.db.query(EmiInstallment)
            .filter(EmiInstallment.loan_id == loan_id)
            .order_by(EmiInstallment.sequence_no.asc())
            .all()
        )

    def update(self, installment: EmiInstallment, **fields) -> EmiInstallment:
        _apply(installment, fields)
        return installment


class PaymentRepository:
    """Append-only payment ledger"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        loan_id: uuid.UUID,
        amount: Decimal,
        payment_date: date,
        payment_mode: str,
        transaction_ref: Optional[str] = None,
    ) -> Payment:
        payment = Payment(
            loan_id=loan_id,
            amount=amount,
            payment_date=payment_date,
            payment_mode=payment_mode,
            transaction_ref=transaction_ref,
            status="SUCCESS",
        )
        self.db.add(payment)
        self.db.flush()
        return payment


class CollateralRepository:
    """Repository for pledged mutual-fund positions"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields) -> Collateral:
        collateral = Collateral(**fields)
        self.db.add(collateral)
        self.db.flush()
        return collateral

    def get(self, collateral_id: uuid.UUID) -> Optional[Collateral]:
        return self.db.get(Collateral, collateral_id)

    def list_pledged_by_loan(self, loan_id: uuid.UUID) -> List[Collateral]:
        return (
            self.db.query(Collateral)
            .filter(
                Collateral.loan_id == loan_id,
                Collateral.pledge_status == PledgeStatus.PLEDGED.value,
            )
            .all()
        )

    def list_pledged(self) -> List[Collateral]:
        return (
            self.db.query(Collateral)
            .filter(Collateral.pledge_status == PledgeStatus.PLEDGED.value)
            .order_by(Collateral.created_at)
            .all()
        )

    def update(self, collateral: Collateral, **fields) -> Collateral:
        _apply(collateral, fields)
        self.db.flush()
        return collateral


class MarginCallRepository:
    """Repository for margin calls"""

    def __init__(self, db: Session):
        self.db = db

    def find_pending(self, loan_id: uuid.UUID) -> Optional[MarginCall]:
        return (
            self.db.query(MarginCall)
            .filter(
                MarginCall.loan_id == loan_id,
                MarginCall.status == MarginCallStatus.PENDING.value,
            )
            .first()
        )

    def create(self, loan_id: uuid.UUID, decision: MarginCallDecision, due_date: datetime) -> MarginCall:
        margin_call = MarginCall(
            loan_id=loan_id,
            trigger_ltv=decision.trigger_ltv,
            current_ltv=decision.current_ltv,
            shortfall_amount=decision.shortfall_amount,
            status=MarginCallStatus.PENDING.value,
            due_date=due_date,
        )
        self.db.add(margin_call)
        self.db.flush()
        return margin_call

    def get(self, margin_call_id: uuid.UUID) -> Optional[MarginCall]:
        return self.db.get(MarginCall, margin_call_id)

    def list_by_loan(self, loan_id: uuid.UUID) -> List[MarginCall]:
        """Margin call history, newest first"""
        return (
            self.db.query(MarginCall)
            .filter(MarginCall.loan_id == loan_id)
            .order_by(MarginCall.created_at.desc(), MarginCall.due_date.desc())
            .all()
        )

    def update(self, margin_call: MarginCall, **fields) -> MarginCall:
        _apply(margin_call, fields)
        self.db.flush()
        return margin_call


class NotificationRepository:
    """Outbox for notifications awaiting webhook delivery"""

    def __init__(self, db: Session):
        self.db = db

    def enqueue(self, loan_id: uuid.UUID, kind: str, payload: Dict[str, Any], target_url: str) -> OutboundNotification:
        row = OutboundNotification(
            loan_id=loan_id,
            kind=kind,
            payload=payload,
            target_url=target_url,
            status="pending",
        )
        self.db.add(row)
        return row

    def list_pending(self) -> List[OutboundNotification]:
        return (
            self.db.query(OutboundNotification)
            .filter(OutboundNotification.status.in_(("pending", "failed")))
            .order_by(OutboundNotification.created_at)
            .all()
        )
