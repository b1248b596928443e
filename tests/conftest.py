from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from src.adapters.clock import FixedClock
from src.adapters.dev_notifier import DevNotifier
from src.adapters.payment_stub import PaymentStubAdapter
from src.adapters.sqlite.migrator import migrate
from src.adapters.sqlite_db import (
    SQLiteReviewRepo,
    SQLiteRuleRepo,
    SQLiteSellerAccountRepo,
    SQLiteTransactionRepo,
    SQLiteUnitOfWorkFactory,
)
from src.api.auth_utils import create_access_token
from src.api.deps import Settings, get_clock, get_notifier, get_payments, get_settings
from src.api.main import app
from src.components import ledger, ratings
from src.components.ledger import LedgerDeps
from src.components.ratings import RatingsDeps
from src.domain.entities import Actor, Rule, RuleContent, RulePricing
from src.domain.policy import PolicyEngine
from src.rules.loader import load_rules
from src.rules.models import Rules

ROOT = Path(__file__).resolve().parents[1]
RULES_PATH = ROOT / "rules.yaml"

T0 = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def rules() -> Rules:
    return load_rules(RULES_PATH)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """A freshly migrated SQLite file."""
    path = str(tmp_path / "market.db")
    migrate(path)
    return path


@pytest.fixture
def uow_factory(db_path: str) -> SQLiteUnitOfWorkFactory:
    return SQLiteUnitOfWorkFactory(db_path, timeout=5.0)


@pytest.fixture
def rule_repo(db_path: str) -> SQLiteRuleRepo:
    return SQLiteRuleRepo(db_path)


@pytest.fixture
def notifier() -> DevNotifier:
    return DevNotifier()


@pytest.fixture
def payments() -> PaymentStubAdapter:
    return PaymentStubAdapter()


# --- Actors ---


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


# --- Catalog ---


def make_rule(owner: Actor, price: str | None = None, query: str | None = None) -> Rule:
    pricing = RulePricing()
    if price is not None:
        pricing = RulePricing(is_paid=True, amount=Decimal(price), currency="USD")
    return Rule(
        owner_id=owner.user_id,
        title="Encoded PowerShell Command Line",
        content=RuleContent(
            query=query
            or (
                'process where process.name : ("powershell.exe", "pwsh.exe") and '
                'process.args : ("-enc", "-EncodedCommand", "-e") and '
                "length(process.command_line) > 200 and not "
                'process.parent.executable : "C:\\\\Program Files\\\\*"'
            ),
            metadata={"mitre": ["T1027"], "language": "eql"},
        ),
        pricing=pricing,
        created_at=T0,
        updated_at=T0,
    )


@pytest.fixture
def paid_rule(rule_repo: SQLiteRuleRepo, seller: Actor) -> Rule:
    return rule_repo.save(make_rule(seller, price="29.99"))


@pytest.fixture
def free_rule(rule_repo: SQLiteRuleRepo, seller: Actor) -> Rule:
    return rule_repo.save(make_rule(seller, query="event.code:4625 | stats count by user.name"))


@pytest.fixture
def rule_factory(rule_repo: SQLiteRuleRepo) -> Callable[..., Rule]:
    """Save a rule for owner; pass price for a paid rule."""

    def _create(owner: Actor, price: str | None = None, **changes: object) -> Rule:
        rule = make_rule(owner, price=price)
        if changes:
            rule = rule.model_copy(update=changes)
        return rule_repo.save(rule)

    return _create


# --- API ---


@pytest.fixture
def client(
    db_path: str,
    tmp_path: Path,
    clock: FixedClock,
    payments: PaymentStubAdapter,
    notifier: DevNotifier,
) -> Iterator[TestClient]:
    """TestClient wired to the temp database and deterministic collaborators."""
    settings = Settings()
    settings.base_dir = ROOT
    settings.data_dir = tmp_path
    settings.db_path = db_path
    settings.rules_path = RULES_PATH

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_payments] = lambda: payments
    app.dependency_overrides[get_notifier] = lambda: notifier

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[Actor], dict[str, str]]:
    def _headers(actor: Actor) -> dict[str, str]:
        token = create_access_token(actor)
        return {"Authorization": f"Bearer {token}"}

    return _headers


# --- Components ---


@pytest.fixture
def ledger_deps(
    db_path: str,
    uow_factory: SQLiteUnitOfWorkFactory,
    payments: PaymentStubAdapter,
    clock: FixedClock,
    notifier: DevNotifier,
    rules: Rules,
) -> LedgerDeps:
    return LedgerDeps(
        uow_factory=uow_factory,
        transactions=SQLiteTransactionRepo(db_path),
        accounts=SQLiteSellerAccountRepo(db_path),
        payments=payments,
        clock=clock,
        policy=PolicyEngine(rules),
        notifier=notifier,
        config=ledger.load_config_from_rules(rules),
    )


@pytest.fixture
def ratings_deps(
    db_path: str,
    uow_factory: SQLiteUnitOfWorkFactory,
    rule_repo: SQLiteRuleRepo,
    clock: FixedClock,
    notifier: DevNotifier,
    rules: Rules,
) -> RatingsDeps:
    return RatingsDeps(
        uow_factory=uow_factory,
        reviews=SQLiteReviewRepo(db_path),
        rules=rule_repo,
        clock=clock,
        policy=PolicyEngine(rules),
        notifier=notifier,
        config=ratings.load_config_from_rules(rules),
    )
