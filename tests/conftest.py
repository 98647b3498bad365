import os

os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ["LOGFIRE_ENABLED"] = "false"

import pytest

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from policy_review.api.deps import get_db
from policy_review.enums import AgreementType
from policy_review.features.agreements.services import create_incoming_agreement
from policy_review.main import app
from policy_review.models import Base, PolicyRule


SAMPLE_DRAFT = (
    "MASTER SERVICES AGREEMENT\n\n"
    "Payment Terms. Invoices are due Net 30 days from invoice date.\n\n"
    "Confidentiality. Confidentiality survives 1 year after termination.\n\n"
    "Governing Law. This agreement is governed by the laws of Delaware."
)


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    async with engine.begin() as cnx:
        await cnx.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_draft():
    return SAMPLE_DRAFT


@pytest.fixture
async def agreement(db):
    return await create_incoming_agreement(db, AgreementType.MSA, "Northwind Logistics", SAMPLE_DRAFT)


@pytest.fixture
async def policies(db):
    rules = [
        PolicyRule(description="All invoices are due Net 30 unless otherwise agreed in writing."),
        PolicyRule(description="Confidentiality obligations survive for two years after termination."),
        PolicyRule(description="The agreement is governed by the laws of Florida.", is_active=False),
    ]
    db.add_all(rules)
    await db.commit()
    return rules
