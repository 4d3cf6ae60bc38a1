"""
Pytest configuration and fixtures for casbin-sql-store tests
"""
from pathlib import Path

import casbin
import pytest
from casbin.model import Model
from sqlalchemy import create_engine, text
from sqlalchemy.ext.asyncio import create_async_engine

from casbin_sql_store import Adapter, AsyncAdapter
from casbin_sql_store.rules import rule_values

FIXTURES_DIR = Path(__file__).parent / "fixtures"
MODEL_PATH = str(FIXTURES_DIR / "rbac_model.conf")
POLICY_PATH = str(FIXTURES_DIR / "rbac_policy.csv")

SEEDED_POLICY = [
    ["alice", "data1", "read"],
    ["bob", "data2", "write"],
    ["data2_admin", "data2", "read"],
    ["data2_admin", "data2", "write"],
]


def file_model():
    """Model holding the fixture CSV policy"""
    return casbin.Enforcer(MODEL_PATH, POLICY_PATH).get_model()


def stored_rules(engine, table_name="casbin_rule"):
    """Read (p_type, values) pairs straight from the table, in id order"""
    query = text(f"SELECT p_type, v0, v1, v2, v3, v4, v5 FROM {table_name} ORDER BY id")
    with engine.connect() as conn:
        rows = conn.execute(query).mappings().all()
    return [(row["p_type"], rule_values(row)) for row in rows]


def as_set(rules):
    return sorted(tuple(rule) for rule in rules)


def failing_trigger(table_name="casbin_rule"):
    """Trigger DDL that makes any insert with v0 = 'boom' fail"""
    return text(
        f"CREATE TRIGGER reject_boom BEFORE INSERT ON {table_name} "
        "WHEN NEW.v0 = 'boom' BEGIN SELECT RAISE(ABORT, 'boom rejected'); END"
    )


@pytest.fixture
def empty_model():
    """Casbin model with the RBAC definition and no rules"""
    model = Model()
    model.load_model(MODEL_PATH)
    return model


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{(tmp_path / 'rules.db').as_posix()}")
    yield engine
    engine.dispose()


@pytest.fixture
def adapter(engine):
    return Adapter(engine)


@pytest.fixture
def seeded_adapter(adapter):
    """Adapter whose table holds the fixture CSV policy"""
    adapter.save_policy(file_model())
    return adapter


@pytest.fixture
async def async_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{(tmp_path / 'rules.db').as_posix()}")
    yield engine
    await engine.dispose()


@pytest.fixture
async def async_adapter(async_engine):
    return await AsyncAdapter.create(async_engine)


@pytest.fixture
async def seeded_async_adapter(async_adapter):
    await async_adapter.save_policy(file_model())
    return async_adapter
