import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.adapters.clock import SystemClock
from src.adapters.notifier import ConnectionDirectory, DirectoryNotifier
from src.adapters.payment_stub import PaymentStubAdapter
from src.adapters.sqlite_db import (
    SQLiteNotificationRepo,
    SQLitePurchaseRepo,
    SQLiteReviewRepo,
    SQLiteRuleRepo,
    SQLiteSellerAccountRepo,
    SQLiteTransactionRepo,
    SQLiteUnitOfWorkFactory,
)
from src.api.auth_utils import InvalidToken, actor_from_token
from src.components import content_gate, ledger, ratings
from src.components.content_gate import ContentGateConfig
from src.components.ledger import LedgerDeps
from src.components.ratings import RatingsDeps
from src.core.ports.notifications import NotificationPort
from src.core.ports.payment import PaymentPort
from src.core.ports.time import ClockPort
from src.domain.entities import Actor
from src.domain.policy import PolicyEngine
from src.rules.loader import load_rules
from src.rules.models import Rules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("MARKET_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "market.db")
        self.rules_path = self.base_dir / "rules.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


def get_policy(rules: Rules = Depends(get_rules)) -> PolicyEngine:
    return PolicyEngine(rules)


# --- Storage ---
def get_uow_factory(settings: Settings = Depends(get_settings)) -> SQLiteUnitOfWorkFactory:
    return SQLiteUnitOfWorkFactory(settings.db_path)


def get_rule_repo(settings: Settings = Depends(get_settings)) -> SQLiteRuleRepo:
    return SQLiteRuleRepo(settings.db_path)


def get_transaction_repo(settings: Settings = Depends(get_settings)) -> SQLiteTransactionRepo:
    return SQLiteTransactionRepo(settings.db_path)


def get_purchase_repo(settings: Settings = Depends(get_settings)) -> SQLitePurchaseRepo:
    return SQLitePurchaseRepo(settings.db_path)


def get_review_repo(settings: Settings = Depends(get_settings)) -> SQLiteReviewRepo:
    return SQLiteReviewRepo(settings.db_path)


def get_account_repo(settings: Settings = Depends(get_settings)) -> SQLiteSellerAccountRepo:
    return SQLiteSellerAccountRepo(settings.db_path)


def get_notification_repo(settings: Settings = Depends(get_settings)) -> SQLiteNotificationRepo:
    return SQLiteNotificationRepo(settings.db_path)


# --- Collaborators ---

# Time adapter for deterministic time operations
_clock_instance: SystemClock | None = None


def get_clock() -> ClockPort:
    """Get clock singleton."""
    global _clock_instance
    if _clock_instance is None:
        _clock_instance = SystemClock()
    return _clock_instance


# Payments are authorized by a stub until a gateway adapter exists
_payments_instance: PaymentStubAdapter | None = None


def get_payments() -> PaymentPort:
    """Get payment adapter singleton."""
    global _payments_instance
    if _payments_instance is None:
        _payments_instance = PaymentStubAdapter()
    return _payments_instance


# Process-wide registry of live push connections
_directory_instance: ConnectionDirectory | None = None


def get_connection_directory() -> ConnectionDirectory:
    global _directory_instance
    if _directory_instance is None:
        _directory_instance = ConnectionDirectory()
    return _directory_instance


def get_notifier(
    repo: SQLiteNotificationRepo = Depends(get_notification_repo),
    directory: ConnectionDirectory = Depends(get_connection_directory),
    clock: ClockPort = Depends(get_clock),
) -> NotificationPort:
    return DirectoryNotifier(repo, directory, clock)


# --- Component Dependencies ---
def get_ledger_deps(
    uow_factory: SQLiteUnitOfWorkFactory = Depends(get_uow_factory),
    transactions: SQLiteTransactionRepo = Depends(get_transaction_repo),
    accounts: SQLiteSellerAccountRepo = Depends(get_account_repo),
    payments: PaymentPort = Depends(get_payments),
    clock: ClockPort = Depends(get_clock),
    policy: PolicyEngine = Depends(get_policy),
    notifier: NotificationPort = Depends(get_notifier),
    rules: Rules = Depends(get_rules),
) -> LedgerDeps:
    return LedgerDeps(
        uow_factory=uow_factory,
        transactions=transactions,
        accounts=accounts,
        payments=payments,
        clock=clock,
        policy=policy,
        notifier=notifier,
        config=ledger.load_config_from_rules(rules),
    )


def get_ratings_deps(
    uow_factory: SQLiteUnitOfWorkFactory = Depends(get_uow_factory),
    reviews: SQLiteReviewRepo = Depends(get_review_repo),
    rule_repo: SQLiteRuleRepo = Depends(get_rule_repo),
    clock: ClockPort = Depends(get_clock),
    policy: PolicyEngine = Depends(get_policy),
    notifier: NotificationPort = Depends(get_notifier),
    rules: Rules = Depends(get_rules),
) -> RatingsDeps:
    return RatingsDeps(
        uow_factory=uow_factory,
        reviews=reviews,
        rules=rule_repo,
        clock=clock,
        policy=policy,
        notifier=notifier,
        config=ratings.load_config_from_rules(rules),
    )


def get_gate_config(rules: Rules = Depends(get_rules)) -> ContentGateConfig:
    return content_gate.load_config_from_rules(rules)


# --- Identity ---
bearer_scheme = HTTPBearer(auto_error=False)


def _token_from_request(
    request: Request, credentials: HTTPAuthorizationCredentials | None
) -> str | None:
    # 1. Try Cookie first (HttpOnly)
    cookie_token = request.cookies.get("access_token")
    if cookie_token and cookie_token.startswith("Bearer "):
        return cookie_token.split(" ", 1)[1]
    # 2. Authorization header
    if credentials is not None:
        return credentials.credentials
    return None


def get_optional_actor(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Actor | None:
    """
    Actor for the bearer token, or None when the request is anonymous.

    A token that is present but invalid is rejected rather than treated
    as anonymous.
    """
    token = _token_from_request(request, credentials)
    if not token:
        return None

    try:
        return actor_from_token(token)
    except InvalidToken as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def get_actor(actor: Actor | None = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor
