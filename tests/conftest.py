import os

# Must be set before app.core.config is imported
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["ADMIN_WALLET_ADDRESS"] = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.database import Base, get_db
from app.core.deps import get_admin_verifier, get_email_dispatcher, get_email_service
from app.core.exceptions import ExternalServiceError, ServiceUnavailableError
from app.core.security import WalletSignatureVerifier
from app.services.verification_service import VerificationService
from app.services.waitlist_service import WaitlistService
from app.services.waitlist_store import WaitlistStore

# Well-known local development keys (Hardhat accounts #0 and #1)
ADMIN_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ADMIN_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER_PRIVATE_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
OTHER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

ADMIN_MESSAGE = "Admin authentication"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def sign(message: str, private_key: str) -> str:
    signed = Account.sign_message(encode_defunct(text=message), private_key=private_key)
    signature = signed.signature.hex()
    return signature if signature.startswith("0x") else "0x" + signature


def credentials(private_key: str = ADMIN_PRIVATE_KEY, address: str = ADMIN_ADDRESS, message: str = ADMIN_MESSAGE) -> dict:
    return {"walletAddress": address, "signature": sign(message, private_key), "message": message}


class FakeEmailService:
    """Records sends instead of calling the provider."""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def verification_url(self, token: str) -> str:
        return f"http://localhost:3000/verify-email?token={token}"

    def send_verification_email(self, to: str, token: str, name: str) -> dict:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append({"to": to, "token": token, "name": name})
        return {"id": f"email_{len(self.sent)}"}


class Outbox(list):
    """Stands in for the background email dispatcher."""

    def __call__(self, to: str, token: str, name: str) -> None:
        self.append({"to": to, "token": token, "name": name})

    def token_for(self, email: str) -> str:
        return next(m["token"] for m in reversed(self) if m["to"] == email)


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def email_service():
    return FakeEmailService()


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def waitlist_service(db_session, email_service, outbox):
    store = WaitlistStore(db_session)
    return WaitlistService(
        store=store,
        verification=VerificationService(store),
        email_service=email_service,
        dispatch_email=outbox,
    )


@pytest.fixture
def client(db_session, email_service, outbox):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: email_service
    app.dependency_overrides[get_email_dispatcher] = lambda: outbox
    app.dependency_overrides[get_admin_verifier] = lambda: WalletSignatureVerifier(ADMIN_ADDRESS)
    try:
        yield AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_auth():
    return credentials()


@pytest.fixture
def unavailable_email(email_service):
    email_service.fail_with = ServiceUnavailableError("Email service is not configured")
    return email_service


@pytest.fixture
def failing_email(email_service):
    email_service.fail_with = ExternalServiceError("Failed to send verification email")
    return email_service
