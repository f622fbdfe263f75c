from .backup import BackupData
from .base import (
    CategoryInUse,
    DaybookError,
    Immutable,
    IntegrityFault,
    NotFound,
    PersistenceFailure,
    Side,
    TooFewLines,
    Unbalanced,
    UnresolvedAccount,
    VoucherLinked,
)
from .book import Book
from .chart import Account, AccountCategory, Chart
from .config import Settings, configure_logging, get_settings
from .engine import BalanceEngine
from .entry import Balance, Draft, DraftLine, JournalEntry, VoucherType
from .reports import DayBook, LedgerReport, TrialBalance
from .roster import ClassInfo, InstituteInfo, Student
from .store import JsonFileStore, MemoryStore
