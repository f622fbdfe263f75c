"""Backup of a tenant as one JSON document and destructive restore."""

import logging
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .base import DaybookError, SaveLoadMixin
from .chart import Chart
from .fees import Fees
from .journal import Journal
from .roster import InstituteInfo, Roster
from .store import KeyValueStore, State, check_tenant

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1


class BackupData(BaseModel, SaveLoadMixin):
    model_config = ConfigDict(extra="forbid")

    version: int = BACKUP_VERSION
    exported_at: datetime = Field(default_factory=datetime.now)
    chart: Chart
    journal: Journal
    roster: Roster
    fees: Fees
    institute: InstituteInfo = Field(default_factory=InstituteInfo)

    @classmethod
    def from_state(cls, state: State) -> "BackupData":
        copy = state.model_copy(deep=True)
        return cls(
            chart=copy.chart,
            journal=copy.journal,
            roster=copy.roster,
            fees=copy.fees,
            institute=copy.institute,
        )

    def to_state(self) -> State:
        return State(
            chart=self.chart,
            journal=self.journal,
            roster=self.roster,
            fees=self.fees,
            institute=self.institute,
        ).model_copy(deep=True)


def export_backup(state: State) -> BackupData:
    return BackupData.from_state(state)


def restore_backup(
    store: KeyValueStore, tenant: str, backup: BackupData, confirm: bool = False
) -> State:
    """Replace every collection of the tenant with the backup."""
    if not confirm:
        raise DaybookError("Restore replaces all data and must be confirmed.")
    if backup.version != BACKUP_VERSION:
        raise DaybookError(f"Unsupported backup version {backup.version}.")
    state = backup.to_state()
    store.write_many(check_tenant(tenant), state.collections())
    logger.info("Restored backup from %s for %s", backup.exported_at, tenant)
    return state
