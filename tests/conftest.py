import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401
from config import Settings
from database import Base


def _settings(**overrides) -> Settings:
    values = dict(
        database_url="sqlite://",
        timezone="UTC",
        aggregation_timeout_secs=5.0,
        cash_purchase_types=("cash", "نقد"),
        max_count_value=10_000,
        max_integer_amount=1_000_000,
        max_decimal_amount=100_000_000_000,
        scheduler_enabled=False,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def make_settings():
    return _settings


@pytest.fixture
def session(tmp_path):
    # A file database: every reader thread opens its own connection to it.
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()
