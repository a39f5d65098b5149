"""Shared fixtures: every test runs against temporary directories and SQLite files."""
from __future__ import annotations

import os
import tempfile
from pathlib import Path

_DATA_DIR = Path(tempfile.mkdtemp(prefix="vitrine-tests-"))
os.environ["VITRINE_DATA_DIR"] = str(_DATA_DIR)
os.environ["VITRINE_STORAGE_LOCAL_PATH"] = str(_DATA_DIR / "uploads")
os.environ["VITRINE_SECRET_KEY"] = "test-secret-key-with-enough-entropy-for-hs256"
os.environ["VITRINE_ENABLE_PROMETHEUS"] = "false"
os.environ["VITRINE_RATE_LIMIT_REQUESTS"] = "10000"
os.environ["VITRINE_PAYMENT_SETTLEMENT_DELAY_SECONDS"] = "0.01"
os.environ["VITRINE_CATALOG_POLL_INTERVAL_SECONDS"] = "0.05"

import pytest
from sqlalchemy.orm import sessionmaker

from vitrine.core.database import build_session_factory, init_database
from vitrine.core.plans import CatalogSnapshot, Plan
from vitrine.core.settings import Settings
from vitrine.services.records import RecordsStore
from vitrine.services.storage import StorageService


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        storage_local_path=tmp_path / "uploads",
        session_dir=tmp_path / "sessions",
        payment_settlement_delay_seconds=0.01,
        payment_timeout_seconds=5.0,
    )


@pytest.fixture
def session_factory(tmp_path: Path) -> sessionmaker:
    factory = build_session_factory(f"sqlite:///{tmp_path / 'records.db'}")
    init_database(factory)
    return factory


@pytest.fixture
def records(session_factory: sessionmaker) -> RecordsStore:
    return RecordsStore(session_factory)


@pytest.fixture
def storage(settings: Settings) -> StorageService:
    return StorageService(settings)


@pytest.fixture
def safira() -> Plan:
    return Plan(id="safira", name="Safira", price=30, features=("Destaque na busca",))


@pytest.fixture
def gratis() -> Plan:
    return Plan(id="gratis", name="Grátis", price=0)


@pytest.fixture
def snapshot(safira: Plan, gratis: Plan) -> CatalogSnapshot:
    return CatalogSnapshot(plans=(safira, gratis), version=1)
