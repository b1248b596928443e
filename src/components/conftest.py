"""
Shared fixtures for component unit tests.

Components that write through a unit of work are tested against a real,
freshly migrated SQLite file so storage constraints take part.
"""

from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import pytest

from src.adapters.clock import FixedClock
from src.adapters.dev_notifier import DevNotifier
from src.adapters.payment_stub import PaymentStubAdapter
from src.adapters.sqlite.migrator import migrate
from src.adapters.sqlite_db import SQLitePurchaseRepo, SQLiteRuleRepo, SQLiteUnitOfWorkFactory
from src.domain.entities import Actor, Rule, RuleContent, RulePricing
from src.rules.loader import load_rules
from src.rules.models import Rules

RULES_PATH = Path(__file__).resolve().parents[2] / "rules.yaml"

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def rules() -> Rules:
    return load_rules(RULES_PATH)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    path = str(tmp_path / "market.db")
    migrate(path)
    return path


@pytest.fixture
def uow_factory(db_path: str) -> SQLiteUnitOfWorkFactory:
    return SQLiteUnitOfWorkFactory(db_path, timeout=2.0)


@pytest.fixture
def rule_repo(db_path: str) -> SQLiteRuleRepo:
    return SQLiteRuleRepo(db_path)


@pytest.fixture
def purchase_repo(db_path: str) -> SQLitePurchaseRepo:
    return SQLitePurchaseRepo(db_path)


@pytest.fixture
def notifier() -> DevNotifier:
    return DevNotifier()


@pytest.fixture
def payments() -> PaymentStubAdapter:
    return PaymentStubAdapter()


@pytest.fixture
def seller() -> Actor:
    return Actor(user_id=uuid4(), role="verified_contributor")


@pytest.fixture
def buyer() -> Actor:
    return Actor(user_id=uuid4(), role="user")


@pytest.fixture
def other_user() -> Actor:
    return Actor(user_id=uuid4(), role="user")


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=uuid4(), role="admin")


@pytest.fixture
def moderator() -> Actor:
    return Actor(user_id=uuid4(), role="moderator")


@pytest.fixture
def paid_rule(rule_repo: SQLiteRuleRepo, seller: Actor) -> Rule:
    rule = Rule(
        owner_id=seller.user_id,
        title="Suspicious PowerShell Download Cradle",
        content=RuleContent(
            query=(
                'process where process.name == "powershell.exe" and '
                'process.command_line like~ ("*DownloadString*", "*DownloadFile*", '
                '"*Invoke-WebRequest*", "*IEX*", "*Net.WebClient*") and not '
                'process.parent.name in ("msiexec.exe", "ccmexec.exe")'
            ),
            metadata={"mitre": ["T1059.001"], "language": "eql"},
        ),
        pricing=RulePricing(is_paid=True, amount=Decimal("29.99"), currency="USD"),
        created_at=T0,
        updated_at=T0,
    )
    return rule_repo.save(rule)


@pytest.fixture
def free_rule(rule_repo: SQLiteRuleRepo, seller: Actor) -> Rule:
    rule = Rule(
        owner_id=seller.user_id,
        title="Failed Logon Burst",
        content=RuleContent(query="event.code:4625 | stats count by user.name"),
        created_at=T0,
        updated_at=T0,
    )
    return rule_repo.save(rule)
