"""Default column set and storage keys for the persisted collections."""

from outreach_tracker.models import STATUSES

DEFAULT_COLUMNS = [
    {"id": "company", "label": "Company", "type": "text"},
    {"id": "industry", "label": "Industry", "type": "text"},
    {"id": "contact", "label": "Contact Person", "type": "text"},
    {"id": "email", "label": "Email", "type": "email"},
    {"id": "status", "label": "Status", "type": "select", "options": list(STATUSES)},
    {"id": "lastContact", "label": "Last Contact", "type": "date"},
    {"id": "demoLink", "label": "Demo Link", "type": "url"},
]

# Collection names; the persisted key is the configured prefix plus the name
COLUMNS = "columns"
CLIENTS = "clients"
ASSETS = "assets"
COLLECTIONS = (COLUMNS, CLIENTS, ASSETS)


def storage_keys(prefix: str) -> dict[str, str]:
    """Map each collection name to its storage key, e.g. "clients" -> "ot_clients"."""
    return {name: f"{prefix}{name}" for name in COLLECTIONS}
