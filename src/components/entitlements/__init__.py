"""
Entitlement component.

Public API for purchases, access checks and download bookkeeping.
"""

from .component import (
    access_lookup_for,
    build_purchase,
    check_access,
    generate_license_key,
    get_for_rule,
    has_active_access,
    list_for_buyer,
    load_config_from_rules,
    lookup_access,
    mint,
    record_download,
    revoke,
    run,
)
from .models import (
    DEFAULT_LICENSE_KEY_BYTES,
    AccessCheckInput,
    AccessCheckOutput,
    EntitlementConfig,
    ListPurchasesInput,
    RecordDownloadInput,
)
from .ports import PurchaseLookupPort

__all__ = [
    # Functions
    "access_lookup_for",
    "build_purchase",
    "check_access",
    "generate_license_key",
    "get_for_rule",
    "has_active_access",
    "list_for_buyer",
    "load_config_from_rules",
    "lookup_access",
    "mint",
    "record_download",
    "revoke",
    "run",
    # Models
    "DEFAULT_LICENSE_KEY_BYTES",
    "AccessCheckInput",
    "AccessCheckOutput",
    "EntitlementConfig",
    "ListPurchasesInput",
    "RecordDownloadInput",
    # Ports
    "PurchaseLookupPort",
]
