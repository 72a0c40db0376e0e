"""Pytest fixtures for testing"""

import pytest
import httpx
from datetime import date
from decimal import Decimal
from typing import Callable, Generator, List
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from lamf_servicing.api.dependencies import get_notification_client
from lamf_servicing.api.main import create_app
from lamf_servicing.config import ServicingConfig
from lamf_servicing.infrastructure.clients.notifications import NotificationClient
from lamf_servicing.infrastructure.database.models import Base, Collateral, Loan, LoanProduct
from lamf_servicing.infrastructure.database.repositories import ProductRepository
from lamf_servicing.infrastructure.database.session import get_db
from lamf_servicing.services.origination import LoanOriginator


# Test database: one shared in-memory connection
TEST_DATABASE_URL = "sqlite://"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

WEBHOOK_URL = "http://notifications.test/hooks/loan-alerts"


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def config() -> ServicingConfig:
    """Default servicing policy"""
    return ServicingConfig()


@pytest.fixture
def webhook_requests() -> List[httpx.Request]:
    """Requests captured by the mock notification webhook"""
    return []


@pytest.fixture
def notification_client(webhook_requests: List[httpx.Request]) -> NotificationClient:
    """Notification client whose webhook always answers 200"""

    def handler(request: httpx.Request) -> httpx.Response:
        webhook_requests.append(request)
        return httpx.Response(200, json={"ok": True})

    return NotificationClient(
        webhook_url=WEBHOOK_URL,
        max_retries=2,
        backoff_base=0,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def client(db: Session, notification_client: NotificationClient) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()
    app.state.session_factory = TestingSessionLocal

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_client] = lambda: notification_client
    return TestClient(app)


@pytest.fixture
def product(db: Session) -> LoanProduct:
    """LAMF product: max LTV 70%, margin call at 80%, liquidation at 90%"""
    product = ProductRepository(db).create(
        name="LAMF Equity",
        interest_rate_percent=Decimal("10.5"),
        max_ltv_percent=Decimal("70"),
        margin_call_threshold=Decimal("80"),
        liquidation_threshold=Decimal("90"),
        foreclosure_charge_percent=None,
    )
    db.commit()
    return product


@pytest.fixture
def make_loan(db: Session, product: LoanProduct) -> Callable[..., Loan]:
    """Originate loans against the default product"""
    counter = {"n": 0}

    def _make_loan(
        principal: Decimal = Decimal("500000"),
        tenure_months: int = 24,
        disbursement_date: date = date(2024, 1, 15),
        annual_rate_percent: Decimal | None = None,
        product_id=None,
        loan_number: str | None = None,
    ) -> Loan:
        counter["n"] += 1
        return LoanOriginator(db).originate(
            loan_number=loan_number or f"LAMF-{counter['n']:04d}",
            product_id=product_id or product.id,
            principal=principal,
            tenure_months=tenure_months,
            disbursement_date=disbursement_date,
            annual_rate_percent=annual_rate_percent,
        )

    return _make_loan


@pytest.fixture
def pledge(db: Session) -> Callable[..., Collateral]:
    """Pledge a mutual-fund position against a loan"""

    def _pledge(
        loan: Loan,
        units: Decimal = Decimal("6000"),
        nav: Decimal = Decimal("100"),
        scheme_code: str = "INF-EQ-001",
        scheme_type: str = "EQUITY",
    ) -> Collateral:
        return LoanOriginator(db).pledge_collateral(
            loan.id,
            fund_name="Bluechip Equity Fund - Growth",
            units=units,
            nav=nav,
            scheme_code=scheme_code,
            scheme_type=scheme_type,
        )

    return _pledge
