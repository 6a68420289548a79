"""
Fixture principali per i test di freight_tracking
"""
import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# L'app crea le tabelle all'import: mai sul file di default
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from freight_tracking.core.settings import CarrierIntegrationSettings
from freight_tracking.database import Base, get_db
from freight_tracking.main import app


# ============================================================================
# Database Test Setup
# ============================================================================

# SQLite in-memory per i test
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """
    Crea una sessione database isolata per ogni test.
    Rollback automatico a fine test.
    """
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()

    try:
        yield session
        session.rollback()
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


def override_get_db():
    """Override per get_db dependency"""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


# ============================================================================
# Carrier settings
# ============================================================================

@pytest.fixture
def carrier_settings() -> CarrierIntegrationSettings:
    """Settings with credentials for every adapter and no waiting"""
    return CarrierIntegrationSettings(
        ssw_base_url="https://ssw.test",
        senior_tracking_url="https://senior.test/tracking",
        atual_cargas_login_url="https://atual.test/login",
        atual_cargas_list_url="https://atual.test/lista",
        atual_cargas_document="11222333000181",
        atual_cargas_password="secret",
        rodonaves_package_url="https://rodonaves.test/package",
        rodonaves_brudam_url="https://rodonaves.test/brudam",
        sao_miguel_api_url="https://saomiguel.test/tracks",
        sao_miguel_app_key="test-app-key",
        braspress_base_url="https://braspress.test/v1/tracking",
        braspress_user="user",
        braspress_password="pass",
        esm_portal_url="https://portal.test/rastrear",
        portal_settle_seconds=0,
        portal_max_attempts=3,
    )


# ============================================================================
# App Fixture con Overrides
# ============================================================================

@pytest.fixture(scope="function")
def test_app(db_session: Session):
    """Crea l'app FastAPI con dependency overrides per i test"""
    app.dependency_overrides[get_db] = override_get_db
    try:
        yield app
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def client(test_app) -> TestClient:
    """Client HTTP sincrono per test semplici"""
    return TestClient(test_app)
