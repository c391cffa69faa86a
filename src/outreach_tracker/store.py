"""Record store: columns, clients and assets with write-through persistence."""

import logging
import re
from collections.abc import Callable
from datetime import datetime

from pydantic import ValidationError

from outreach_tracker.exceptions import StorageError
from outreach_tracker.metrics import compute_metrics, group_by_status
from outreach_tracker.models import (
    ADMIN_FIELDS,
    READ_ONLY_FIELDS,
    Asset,
    Client,
    Column,
    LogEntry,
    PipelineMetrics,
    StoreResult,
)
from outreach_tracker.storage.backends import StorageBackend
from outreach_tracker.storage.schema import (
    ASSETS,
    CLIENTS,
    COLUMNS,
    DEFAULT_COLUMNS,
    storage_keys,
)

logger = logging.getLogger(__name__)

LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _default_columns() -> list[Column]:
    return [Column.from_storage(col) for col in DEFAULT_COLUMNS]


def _numeric_token(value: object) -> int:
    """Trailing integer of an id ("acme_1718000000000" -> 1718000000000), else 0."""
    match = re.search(r"(\d+)$", str(value))
    return int(match.group(1)) if match else 0


class RecordStore:
    """Single source of truth for the pipeline.

    Every mutation is applied in memory first and then the affected
    collection is saved. Operations never raise for bad input: they return a
    StoreResult that is either applied, rejected with a message, or a silent
    no-op for ids that no longer exist.
    """

    def __init__(
        self,
        storage: StorageBackend,
        key_prefix: str = "ot_",
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.storage = storage
        self.keys = storage_keys(key_prefix)
        self._clock = clock

        self._columns: list[Column] = _default_columns()
        self._clients: list[Client] = []
        self._assets: list[Asset] = []

        # Last identifier handed out; ids are millisecond timestamps bumped past this
        self._last_id = 0

        # Save failures that left memory and storage out of step
        self.persistence_errors: list[str] = []

    @classmethod
    def open(
        cls,
        storage: StorageBackend,
        key_prefix: str = "ot_",
        clock: Callable[[], datetime] = datetime.now,
    ) -> "RecordStore":
        """Create a store and load every collection from storage."""
        store = cls(storage, key_prefix=key_prefix, clock=clock)
        store.load()
        return store

    def _load_raw(self, collection: str) -> list | None:
        key = self.keys[collection]
        try:
            return self.storage.load(key)
        except StorageError as e:
            logger.error(f"Could not load '{key}', using defaults: {e}")
            return None

    def _parse(self, collection: str, raw: list, factory: Callable[[dict], object]) -> list:
        """Parse stored records, skipping malformed ones and duplicate ids."""
        items = []
        seen: set = set()
        for data in raw:
            if not isinstance(data, dict):
                logger.warning(f"Skipping non-object entry in {collection}: {data!r}")
                continue
            try:
                item = factory(data)
            except (ValidationError, TypeError) as e:
                logger.warning(f"Skipping invalid entry in {collection}: {e}")
                continue
            if item.id in seen:
                logger.warning(f"Skipping duplicate id {item.id!r} in {collection}")
                continue
            seen.add(item.id)
            items.append(item)
        return items

    def load(self) -> None:
        """Read all three collections. Absent entries yield the defaults."""
        raw_columns = self._load_raw(COLUMNS)
        columns = self._parse(COLUMNS, raw_columns or [], Column.from_storage)
        if not columns:
            if raw_columns is not None:
                logger.warning("No usable columns stored; using the default column set")
            columns = _default_columns()
        self._columns = columns

        self._clients = self._parse(CLIENTS, self._load_raw(CLIENTS) or [], Client.from_storage)
        self._assets = self._parse(ASSETS, self._load_raw(ASSETS) or [], Asset.from_storage)

        # Never hand out an id at or below one already in use
        tokens = [_numeric_token(col.id) for col in self._columns]
        for client in self._clients:
            tokens.append(_numeric_token(client.id))
            tokens.extend(log.id for log in client.logs)
        tokens.extend(asset.id for asset in self._assets)
        self._last_id = max(tokens, default=0)

        logger.info(
            f"Loaded {len(self._columns)} columns, {len(self._clients)} clients, "
            f"{len(self._assets)} assets"
        )

    def _persist(self, collection: str, result: StoreResult) -> StoreResult:
        items = {COLUMNS: self._columns, CLIENTS: self._clients, ASSETS: self._assets}[collection]
        key = self.keys[collection]
        try:
            self.storage.save(key, [item.to_storage() for item in items])
        except StorageError as e:
            logger.warning(f"Change kept in memory only: {e}")
            self.persistence_errors.append(str(e))
            result.warnings.append(str(e))
        return result

    def _fresh_id(self) -> int:
        now_ms = int(self._clock().timestamp() * 1000)
        self._last_id = max(now_ms, self._last_id + 1)
        return self._last_id

    def _today(self) -> str:
        return self._clock().date().isoformat()

    @property
    def columns(self) -> list[Column]:
        return list(self._columns)

    @property
    def clients(self) -> list[Client]:
        return list(self._clients)

    @property
    def assets(self) -> list[Asset]:
        return list(self._assets)

    def get_client(self, client_id: str) -> Client | None:
        for client in self._clients:
            if client.id == client_id:
                return client
        return None

    def get_column(self, column_id: str) -> Column | None:
        for column in self._columns:
            if column.id == column_id:
                return column
        return None

    def create_client(self) -> StoreResult:
        """Insert an empty client at the front of the list."""
        client = Client(
            id=str(self._fresh_id()),
            last_contact=self._today(),
            fields={col.id: "" for col in self._columns if col.id not in ADMIN_FIELDS},
        )
        self._clients.insert(0, client)
        logger.info(f"Created client {client.id}")
        return self._persist(CLIENTS, StoreResult(item=client))

    def update_client_field(self, client_id: str, field_id: str, value: object) -> StoreResult:
        """Set one field of a client.

        Field ids outside the current column set are accepted as-is.
        """
        client = self.get_client(client_id)
        if client is None:
            return StoreResult.not_found()
        if field_id in READ_ONLY_FIELDS:
            return StoreResult.rejected(f"Field '{field_id}' cannot be changed.")

        client.set(field_id, value)
        logger.debug(f"Client {client_id}: {field_id} = {value!r}")
        return self._persist(CLIENTS, StoreResult(item=client))

    def delete_client(self, client_id: str) -> StoreResult:
        """Remove a client. Asking the user for confirmation is the caller's job."""
        client = self.get_client(client_id)
        if client is None:
            return StoreResult.not_found()

        self._clients.remove(client)
        logger.info(f"Deleted client {client_id}")
        return self._persist(CLIENTS, StoreResult(item=client))

    def add_log(self, client_id: str, text: str) -> StoreResult:
        """Prepend a log entry and bump the client's last contact date."""
        text = (text or "").strip()
        if not text:
            return StoreResult.rejected("Log text cannot be empty.")

        client = self.get_client(client_id)
        if client is None:
            return StoreResult.not_found()

        now = self._clock()
        log = LogEntry(id=self._fresh_id(), date=now.strftime(LOG_DATE_FORMAT), text=text)
        client.logs.insert(0, log)
        client.last_contact = now.date().isoformat()

        logger.info(f"Logged activity for client {client_id}")
        return self._persist(CLIENTS, StoreResult(item=log))

    def search(self, term: str) -> list[Client]:
        """Clients with any value containing `term`, case-insensitive.

        Evaluated on every call because the set of fields can change between
        calls. An empty term returns every client.
        """
        needle = (term or "").lower()
        if not needle:
            return list(self._clients)
        return [
            client
            for client in self._clients
            if any(needle in str(value).lower() for value in client.values() if value is not None)
        ]

    def add_asset(self, name: str, url: str) -> StoreResult:
        name = (name or "").strip()
        url = (url or "").strip()
        if not name or not url:
            return StoreResult.rejected("Asset name and URL are required.")

        asset = Asset(id=self._fresh_id(), name=name, url=url)
        self._assets.insert(0, asset)
        logger.info(f"Added asset '{name}'")
        return self._persist(ASSETS, StoreResult(item=asset))

    def insert_column(self, position: int, label: str) -> StoreResult:
        """Insert a text column at `position` (clamped to the current range).

        The id is derived from the label plus a fresh token, so a column
        re-created with the same label never picks up data left behind by a
        deleted one.
        """
        label = (label or "").strip()
        if not label:
            return StoreResult.rejected("Column name cannot be empty.")

        slug = re.sub(r"\s+", "_", label.lower())
        column_id = f"{slug}_{self._fresh_id()}"
        column = Column(id=column_id, label=label, type="text")
        position = max(0, min(position, len(self._columns)))
        self._columns.insert(position, column)

        logger.info(f"Inserted column '{label}' ({column_id}) at {position}")
        return self._persist(COLUMNS, StoreResult(item=column))

    def rename_column(self, column_id: str, label: str) -> StoreResult:
        label = (label or "").strip()
        if not label:
            return StoreResult.rejected("Column name cannot be empty.")

        column = self.get_column(column_id)
        if column is None:
            return StoreResult.not_found()

        column.label = label
        return self._persist(COLUMNS, StoreResult(item=column))

    def delete_column(self, column_id: str) -> StoreResult:
        """Remove a column from the schema.

        Client records keep their value for the column; it is no longer
        shown but stays in storage.
        """
        if len(self._columns) <= 1:
            return StoreResult.rejected("You must have at least one column.")

        column = self.get_column(column_id)
        if column is None:
            return StoreResult.not_found()

        self._columns.remove(column)
        logger.info(f"Deleted column {column_id}")
        return self._persist(COLUMNS, StoreResult(item=column))

    def metrics(self) -> PipelineMetrics:
        return compute_metrics(self._clients)

    def board(self) -> dict[str, list[Client]]:
        return group_by_status(self._clients)
