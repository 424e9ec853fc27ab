"""
Shared fixtures: per-test SQLite database, dependency overrides and factories.
"""
import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["FILE_SIGNING_SECRET"] = "test-signing-secret"
os.environ.pop("OPENAI_API_KEY", None)

import uuid
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from contract_analysis.database import Base, get_db, utcnow
from contract_analysis.main import app
from contract_analysis.models import (
    Analysis,
    AnalysisStatus,
    Document,
    Finding,
    OrgMembership,
    OrgRole,
    Organization,
    Subscription,
    SubscriptionStatus,
    User,
)
from contract_analysis.rate_limiter import RateLimiter, get_rate_limiter
from contract_analysis.services.ai_provider import AIProviderAdapter, get_ai_provider
from contract_analysis.services.audit_service import AuditService, get_audit_service
from contract_analysis.services.storage_service import LocalStorageService, get_storage_service
from contract_analysis.utils.auth import create_access_token


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite database, fresh for each test."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        """WAL lets the audit session write while a request session reads."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def audit(session_factory):
    return AuditService(session_factory=session_factory)


@pytest.fixture
def limiter():
    return RateLimiter("memory://")


@pytest.fixture
def storage(tmp_path):
    return LocalStorageService(str(tmp_path / "uploads"))


@pytest.fixture
def provider():
    """Adapter without a credential: always the fallback analysis."""
    return AIProviderAdapter(api_key=None)


@pytest.fixture
def client(session_factory, audit, limiter, storage, provider):
    """TestClient with every external collaborator overridden."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_service] = lambda: audit
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_ai_provider] = lambda: provider
    app.dependency_overrides[get_storage_service] = lambda: storage

    yield TestClient(app)

    app.dependency_overrides.clear()


# ========== Fake provider client ==========

class FakeCompletions:
    """Records calls and replies with canned content (or raises)."""

    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAIClient:
    def __init__(self, content=None, error=None):
        self.completions = FakeCompletions(content=content, error=error)
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self):
        return self.completions.calls


@pytest.fixture
def fake_openai():
    """Factory for fake OpenAI clients."""
    return FakeOpenAIClient


# ========== Factories ==========

@pytest.fixture
def make_org(db):
    def _make(name="Acme GmbH", plan=None, status=SubscriptionStatus.ACTIVE):
        org = Organization(name=name, slug=f"org-{uuid.uuid4().hex[:10]}")
        db.add(org)
        db.flush()
        if plan is not None:
            db.add(Subscription(org_id=org.id, plan=plan.value, status=status.value))
        db.commit()
        return org

    return _make


@pytest.fixture
def make_user(db, make_org):
    def _make(email=None, name="Test User", org=None, role=OrgRole.OWNER, plan=None, with_org=True):
        user = User(email=email or f"user-{uuid.uuid4().hex[:10]}@example.com", name=name)
        db.add(user)
        db.flush()
        if with_org:
            org = org or make_org(plan=plan)
            db.add(OrgMembership(user_id=user.id, org_id=org.id, role=role.value))
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_document(db):
    def _make(org, uploader, original_name="Mietvertrag.pdf", filename=None, size=2048,
              mime_type="application/pdf", created_at=None):
        key = filename or f"{uuid.uuid4()}-{original_name}"
        document = Document(
            org_id=org.id,
            uploader_id=uploader.id,
            filename=key,
            original_name=original_name,
            path=f"/tmp/{key}",
            size=size,
            mime_type=mime_type,
            category="contract",
        )
        if created_at is not None:
            document.created_at = created_at
        db.add(document)
        db.commit()
        db.refresh(document)
        return document

    return _make


@pytest.fixture
def make_analysis(db):
    def _make(document, status=AnalysisStatus.COMPLETED, risk_score=40, summary="Summary",
              findings=0, created_at=None):
        analysis = Analysis(document_id=document.id, status=status.value)
        if status != AnalysisStatus.PROCESSING:
            analysis.completed_at = utcnow()
        if status == AnalysisStatus.COMPLETED:
            analysis.risk_score = risk_score
            analysis.summary = summary
        if created_at is not None:
            analysis.created_at = created_at
        db.add(analysis)
        db.flush()
        for position in range(findings):
            db.add(Finding(
                analysis_id=analysis.id,
                position=position,
                type="RISK",
                severity="HIGH",
                title=f"Finding {position}",
                description=f"Description {position}",
                suggestion=f"Suggestion {position}",
            ))
        db.commit()
        db.refresh(analysis)
        return analysis

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token({"sub": user.id})
        return {"Authorization": f"Bearer {token}"}

    return _headers
