import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect, text

PROJECT_ROOT = Path(__file__).resolve().parents[1]
BOOKKEEPING_TABLES = {
    "users",
    "businesses",
    "products",
    "suppliers",
    "purchases",
    "sales",
    "expenses",
    "inventory_ledger",
    "ai_insight_logs",
    "audit_logs",
}

pytestmark = pytest.mark.integration


@pytest.fixture()
def postgres_url() -> str:
    url = os.getenv("TEST_POSTGRES_DATABASE_URL")
    if not url:
        pytest.skip("Set TEST_POSTGRES_DATABASE_URL to run Postgres integration tests.")
    return url


@pytest.fixture()
def alembic_cfg(postgres_url, monkeypatch) -> Config:
    monkeypatch.setenv("DATABASE_URL", postgres_url)
    return Config(str(PROJECT_ROOT / "alembic.ini"))


def test_migrated_schema_has_bookkeeping_tables(postgres_url, alembic_cfg):
    command.upgrade(alembic_cfg, "head")

    engine = create_engine(postgres_url, pool_pre_ping=True)
    try:
        with engine.connect() as conn:
            current = conn.execute(text("SELECT version_num FROM alembic_version")).scalar_one()
        assert current == ScriptDirectory.from_config(alembic_cfg).get_current_head()

        inspector = inspect(engine)
        assert BOOKKEEPING_TABLES <= set(inspector.get_table_names())
        checks = {check["name"] for check in inspector.get_check_constraints("products")}
        assert "ck_products_quantity_non_negative" in checks
    finally:
        engine.dispose()


def test_alembic_downgrade_to_base_and_back(alembic_cfg):
    if os.getenv("ALLOW_DESTRUCTIVE_MIGRATION_TESTS") != "1":
        pytest.skip("Set ALLOW_DESTRUCTIVE_MIGRATION_TESTS=1 for the downgrade smoke test.")

    command.upgrade(alembic_cfg, "head")
    command.downgrade(alembic_cfg, "base")
    command.upgrade(alembic_cfg, "head")
