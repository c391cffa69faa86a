"""Data models for outreach_tracker."""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

ColumnType = Literal["text", "email", "date", "url", "select"]

# Pipeline stages, in display order
STATUSES = ["Lead", "Contacted", "Demo Built", "Won", "Lost"]
DEFAULT_STATUS = "Lead"

# Fields every client carries regardless of the column set
ADMIN_FIELDS = ("id", "status", "lastContact", "logs")
READ_ONLY_FIELDS = ("id", "logs")


class Column(BaseModel):
    """A user-defined field of the client schema."""

    id: str
    label: str
    type: ColumnType = "text"
    options: list[str] | None = Field(default=None, description="Choices for select columns")

    @model_validator(mode="after")
    def _options_only_for_select(self) -> "Column":
        if self.type == "select":
            if self.options is None:
                self.options = []
        else:
            self.options = None
        return self

    @classmethod
    def from_storage(cls, data: dict) -> "Column":
        return cls.model_validate(data)

    def to_storage(self) -> dict[str, Any]:
        """Convert to the persisted shape; `options` only appears on select columns."""
        return self.model_dump(exclude_none=True)


class LogEntry(BaseModel):
    """Immutable, timestamped note attached to a client."""

    id: int
    date: str
    text: str

    def to_storage(self) -> dict[str, Any]:
        return {"id": self.id, "date": self.date, "text": self.text}


class Client(BaseModel):
    """One record of the pipeline.

    The administrative attributes are declared; everything the column set
    defines lives in `fields`, keyed by column id. Reads of a field that was
    never written yield a default instead of failing, and fields left over
    from deleted columns are kept untouched.
    """

    id: str
    status: str = DEFAULT_STATUS
    last_contact: str = Field(default="", description="ISO date of the latest contact")
    logs: list[LogEntry] = Field(default_factory=list, description="Newest first")
    fields: dict[str, Any] = Field(default_factory=dict)

    def get(self, field_id: str, default: Any = "") -> Any:
        """Read any field by id, administrative or schema-defined."""
        if field_id == "id":
            return self.id
        if field_id == "status":
            return self.status
        if field_id == "lastContact":
            return self.last_contact
        if field_id == "logs":
            return self.logs
        value = self.fields.get(field_id)
        return default if value is None else value

    def set(self, field_id: str, value: Any) -> bool:
        """Write a field by id. Returns False for fields that cannot be written."""
        if field_id in READ_ONLY_FIELDS:
            return False
        if field_id == "status":
            self.status = DEFAULT_STATUS if value is None else str(value)
        elif field_id == "lastContact":
            self.last_contact = "" if value is None else str(value)
        else:
            self.fields[field_id] = value
        return True

    def values(self) -> list[Any]:
        """Every scalar value of the record, used for free-text search."""
        return [self.id, self.status, self.last_contact, *self.fields.values()]

    @classmethod
    def from_storage(cls, data: dict) -> "Client":
        """Parse a persisted client.

        Expected structure:
        {
            "id": "1718000000000",
            "company": "Acme",
            "status": "Lead",
            "lastContact": "2024-06-10",
            "logs": [{"id": 1718000000001, "date": "2024-06-10 09:30:00", "text": "..."}],
        }
        Any key that is not administrative becomes a schema field.
        """
        fields = {k: v for k, v in data.items() if k not in ADMIN_FIELDS}
        client_id = data.get("id")
        return cls(
            id=str(client_id) if client_id is not None else None,
            status=str(data.get("status") or DEFAULT_STATUS),
            last_contact=str(data.get("lastContact") or ""),
            logs=[LogEntry.model_validate(log) for log in data.get("logs") or []],
            fields=fields,
        )

    def to_storage(self) -> dict[str, Any]:
        """Flatten back to the persisted shape (schema fields inline)."""
        return {
            "id": self.id,
            **self.fields,
            "status": self.status,
            "lastContact": self.last_contact,
            "logs": [log.to_storage() for log in self.logs],
        }


class Asset(BaseModel):
    """A named link kept in the vault, independent of clients."""

    id: int
    name: str
    url: str

    @classmethod
    def from_storage(cls, data: dict) -> "Asset":
        return cls.model_validate(data)

    def to_storage(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "url": self.url}


class StoreResult(BaseModel):
    """Outcome of a store mutation.

    `applied` is False both for rejected input (with `message` set) and for
    ids that no longer exist (no message). `warnings` carries persistence
    problems that did not prevent the in-memory change.
    """

    applied: bool = True
    message: str | None = None
    item: Any = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def rejected(cls, message: str) -> "StoreResult":
        return cls(applied=False, message=message)

    @classmethod
    def not_found(cls) -> "StoreResult":
        return cls(applied=False)


class StageCount(BaseModel):
    """Number of clients in one pipeline stage."""

    status: str
    count: int = 0
    percentage: float = 0.0


class PipelineMetrics(BaseModel):
    """Statistics derived from the client list."""

    total: int = 0
    demo_built: int = 0
    won: int = 0
    conversion_rate: int = Field(default=0, description="Won / total, whole percent")
    pipeline: list[StageCount] = Field(default_factory=list)
