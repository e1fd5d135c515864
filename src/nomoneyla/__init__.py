"""NoMoneyLa - Shared expense ledger with debt settlement."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .models import (
    Category,
    CategorySettlement,
    Contribution,
    ContributionCheck,
    Payer,
    PayerBalance,
    Subcategory,
    Transaction,
    Transfer,
)
from .settle.aggregator import compute_balances, resolve_participants
from .settle.optimizer import optimize_settlement
from .settle.service import SettlementService
from .settle.validator import validate_contribution

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Category",
    "CategorySettlement",
    "Contribution",
    "ContributionCheck",
    "Payer",
    "PayerBalance",
    "Subcategory",
    "Transaction",
    "Transfer",
    "compute_balances",
    "resolve_participants",
    "optimize_settlement",
    "SettlementService",
    "validate_contribution",
]
