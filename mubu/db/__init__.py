"""SQLite storage for accounts, comparison history, clicks and payments."""

from .clicks import ClickDB
from .comparisons import ComparisonDB, LocalComparisonDB
from .payments import PaymentDB
from .schema import ensure_schema
from .users import UserDB

__all__ = [
    "ClickDB",
    "ComparisonDB",
    "LocalComparisonDB",
    "PaymentDB",
    "UserDB",
    "ensure_schema",
]
