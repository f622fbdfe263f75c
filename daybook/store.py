"""Persisted state layout and key-value stores.

State is kept as one collection (a JSON array) per entity type and per
tenant. A store reads collections one by one and writes a batch of them
all together: either every collection in the batch is replaced or
`PersistenceFailure` is raised and the stored collections stay as they were.
"""

import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Protocol

import simplejson as json  # type: ignore
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .base import DaybookError, PersistenceFailure
from .chart import Chart
from .fees import Fees
from .journal import Journal
from .roster import InstituteInfo, Roster

logger = logging.getLogger(__name__)

Records = list[dict]

# collection name -> (state part, field of that part), a part without field
# is a single record kept as a collection of one
LAYOUT: dict[str, tuple[str, str | None]] = {
    "institute": ("institute", None),
    "categories": ("chart", "categories"),
    "accounts": ("chart", "accounts"),
    "overrides": ("journal", "overrides"),
    "income": ("journal", "income"),
    "expenditures": ("journal", "expenditures"),
    "vouchers": ("journal", "vouchers"),
    "classes": ("roster", "classes"),
    "students": ("roster", "students"),
    "fee_heads": ("fees", "fee_heads"),
    "class_fees": ("fees", "class_fees"),
    "concessions": ("fees", "concessions"),
    "payments": ("fees", "payments"),
}

COLLECTIONS = tuple(LAYOUT)

TENANT_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def check_tenant(tenant: str) -> str:
    if not tenant or not TENANT_PATTERN.match(tenant) or tenant in (".", ".."):
        raise DaybookError(f"Invalid tenant name: {tenant!r}")
    return tenant


class State(BaseModel):
    """Everything kept for one tenant."""

    model_config = ConfigDict(extra="forbid")

    chart: Chart = Field(default_factory=Chart)
    journal: Journal = Field(default_factory=Journal)
    roster: Roster = Field(default_factory=Roster)
    fees: Fees = Field(default_factory=Fees)
    institute: InstituteInfo = Field(default_factory=InstituteInfo)

    def collection(self, name: str) -> Records:
        part, attr = LAYOUT[name]
        if attr is None:
            return [getattr(self, part).model_dump(mode="json")]
        return [item.model_dump(mode="json") for item in getattr(getattr(self, part), attr)]

    def collections(self) -> dict[str, Records]:
        return {name: self.collection(name) for name in COLLECTIONS}

    def changed(self, other: "State") -> dict[str, Records]:
        """Collections of this state that differ from `other`."""
        return {
            name: records
            for name, records in self.collections().items()
            if records != other.collection(name)
        }

    @classmethod
    def from_collections(cls, collections: dict[str, Records | None]) -> "State":
        parts: dict[str, dict] = {"chart": {}, "journal": {}, "roster": {}, "fees": {}}
        for name, records in collections.items():
            part, attr = LAYOUT[name]
            if attr is None:
                if records:
                    parts[part] = records[0]
            else:
                parts[part][attr] = records or []
        return cls.model_validate(parts)


class KeyValueStore(Protocol):
    def read(self, tenant: str, collection: str) -> Records | None: ...

    def write_many(self, tenant: str, collections: dict[str, Records]) -> None: ...


def load_state(store: KeyValueStore, tenant: str) -> State:
    check_tenant(tenant)
    collections = {name: store.read(tenant, name) for name in COLLECTIONS}
    try:
        return State.from_collections(collections)
    except (ValidationError, DaybookError) as e:
        raise PersistenceFailure(f"Stored data for {tenant} is not valid: {e}") from e


@dataclass
class MemoryStore:
    """Store kept in a dictionary of JSON strings."""

    data: dict[str, str] = field(default_factory=dict)

    @staticmethod
    def key(tenant: str, collection: str) -> str:
        return f"{check_tenant(tenant)}/{collection}"

    def read(self, tenant: str, collection: str) -> Records | None:
        text = self.data.get(self.key(tenant, collection))
        return None if text is None else json.loads(text, use_decimal=True)

    def write_many(self, tenant: str, collections: dict[str, Records]) -> None:
        encoded = {
            self.key(tenant, name): json.dumps(records) for name, records in collections.items()
        }
        self.data.update(encoded)


@dataclass
class JsonFileStore:
    """One JSON file per collection in `<root>/<tenant>/`."""

    root: Path

    def path(self, tenant: str, collection: str) -> Path:
        return Path(self.root) / check_tenant(tenant) / f"{collection}.json"

    def read(self, tenant: str, collection: str) -> Records | None:
        path = self.path(tenant, collection)
        try:
            return json.loads(path.read_text(encoding="utf-8"), use_decimal=True)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise PersistenceFailure(f"Cannot read {path}: {e}") from e

    def write_many(self, tenant: str, collections: dict[str, Records]) -> None:
        """Stage every collection in a temporary file, then swap them in.

        Files replaced before a failure are restored from their backups.
        """
        staged: list[tuple[Path, Path]] = []
        try:
            for name, records in collections.items():
                path = self.path(tenant, name)
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp = path.with_suffix(".json.tmp")
                tmp.write_text(json.dumps(records, indent=2), encoding="utf-8")
                staged.append((tmp, path))
        except OSError as e:
            self._discard(tmp for tmp, _ in staged)
            raise PersistenceFailure(f"Cannot write collections for {tenant}: {e}") from e
        swapped: list[tuple[Path, Path | None]] = []
        try:
            for tmp, path in staged:
                backup = path.with_suffix(".json.bak") if path.exists() else None
                if backup:
                    shutil.copyfile(path, backup)
                swapped.append((path, backup))
                os.replace(tmp, path)
        except OSError as e:
            self._roll_back(swapped)
            self._discard(tmp for tmp, _ in staged)
            raise PersistenceFailure(f"Cannot replace collections for {tenant}: {e}") from e
        self._discard(backup for _, backup in swapped if backup)
        logger.debug("Wrote %s for %s", ", ".join(collections), tenant)

    @staticmethod
    def _roll_back(swapped: list[tuple[Path, Path | None]]):
        for path, backup in reversed(swapped):
            if backup:
                shutil.copyfile(backup, path)
                backup.unlink()
            else:
                path.unlink(missing_ok=True)
        logger.warning("Restored %d collection file(s) after failed write", len(swapped))

    @staticmethod
    def _discard(paths: Iterable[Path]):
        for path in paths:
            path.unlink(missing_ok=True)
