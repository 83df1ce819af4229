"""Generic Supabase table repository.

One TableRepository serves every entity: the per-entity differences (table
name, searchable columns, range and array filters) live in an EntityResource
value passed in at construction, not in subclasses.

Payloads arrive already validated with camelCase keys; top-level keys are
mapped to snake_case columns on write and back to camelCase on read. Nested
JSON values (address, socialProfiles, products, ...) are stored as-is.

All methods are blocking (supabase-py); routers run them in worker threads.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic.alias_generators import to_camel, to_snake
from supabase import Client

from kpcrm_api.errors import NotFoundError

logger = logging.getLogger(__name__)

SOFT_DELETE_COLUMN = "deleted_at"
_PAGINATION_KEYS = frozenset({"limit", "offset", "query"})


@dataclass(frozen=True)
class EntityResource:
    """Static description of one CRM entity's table and search behaviour.

    Attributes:
        entity: Schema registry name ("organization")
        table: Database table ("organizations")
        search_columns: Text columns matched case-insensitively by ``query``
        range_filters: Search key -> (column, "gte" | "lte")
        array_filters: Search key -> array column that must contain all values
        column_overrides: Search key -> column expression (e.g. JSON path)
    """

    entity: str
    table: str
    search_columns: tuple[str, ...] = ()
    range_filters: dict[str, tuple[str, str]] = field(default_factory=dict)
    array_filters: dict[str, str] = field(default_factory=dict)
    column_overrides: dict[str, str] = field(default_factory=dict)
    order_column: str = "created_at"


def to_columns(payload: dict[str, Any]) -> dict[str, Any]:
    """camelCase payload keys -> snake_case column names (top level only)."""
    return {to_snake(key): value for key, value in payload.items()}


def to_api(row: dict[str, Any]) -> dict[str, Any]:
    """snake_case row -> camelCase API record (top level only)."""
    return {to_camel(key): value for key, value in row.items()}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Page:
    items: list[dict[str, Any]]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total

    def pagination(self) -> dict[str, Any]:
        return {
            "limit": self.limit,
            "offset": self.offset,
            "total": self.total,
            "hasMore": self.has_more,
        }


class TableRepository:
    """CRUD + search over one Supabase table, soft-deleted rows excluded."""

    def __init__(self, client: Client, resource: EntityResource):
        self._client = client
        self.resource = resource

    @property
    def client(self) -> Client:
        return self._client

    def _table(self):
        return self._client.table(self.resource.table)

    def _apply_filters(self, query, criteria: dict[str, Any]):
        resource = self.resource

        text = criteria.get("query")
        if text and resource.search_columns:
            escaped = text.replace(",", " ").replace("(", " ").replace(")", " ")
            query = query.or_(
                ",".join(f"{column}.ilike.%{escaped}%" for column in resource.search_columns)
            )

        for key, value in criteria.items():
            if key in _PAGINATION_KEYS:
                continue
            if key in resource.range_filters:
                column, op = resource.range_filters[key]
                query = query.gte(column, value) if op == "gte" else query.lte(column, value)
            elif key in resource.array_filters:
                query = query.contains(resource.array_filters[key], list(value))
            else:
                column = resource.column_overrides.get(key, to_snake(key))
                query = query.eq(column, value)

        return query

    def search(self, criteria: dict[str, Any]) -> Page:
        """Run a validated search (criteria carry limit/offset defaults)."""
        limit = criteria["limit"]
        offset = criteria["offset"]

        query = self._table().select("*", count="exact").is_(SOFT_DELETE_COLUMN, "null")
        query = self._apply_filters(query, criteria)
        response = (
            query.order(self.resource.order_column, desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )

        rows = response.data or []
        total = response.count if response.count is not None else offset + len(rows)
        return Page(items=[to_api(row) for row in rows], total=total, limit=limit, offset=offset)

    def get(self, record_id: str) -> dict[str, Any]:
        """
        Raises:
            NotFoundError: If no live row has this id
        """
        response = (
            self._table()
            .select("*")
            .eq("id", record_id)
            .is_(SOFT_DELETE_COLUMN, "null")
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows:
            raise NotFoundError(f"{self.resource.entity.capitalize()} not found")
        return to_api(rows[0])

    def create(self, payload: dict[str, Any], extra_columns: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        row = to_columns(payload)
        if extra_columns:
            row.update(extra_columns)
        response = self._table().insert(row).execute()
        rows = response.data or []
        if not rows:
            raise RuntimeError(f"Insert into {self.resource.table} returned no row")
        created = to_api(rows[0])
        logger.info(
            "Record created",
            extra={"event": "record.created", "table": self.resource.table, "record_id": created.get("id")},
        )
        return created

    def update(self, record_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update; an empty payload only returns the current row.

        Raises:
            NotFoundError: If no live row has this id
        """
        if not payload:
            return self.get(record_id)

        row = to_columns(payload)
        row["updated_at"] = _now()
        response = (
            self._table()
            .update(row)
            .eq("id", record_id)
            .is_(SOFT_DELETE_COLUMN, "null")
            .execute()
        )
        rows = response.data or []
        if not rows:
            raise NotFoundError(f"{self.resource.entity.capitalize()} not found")
        logger.info(
            "Record updated",
            extra={"event": "record.updated", "table": self.resource.table, "record_id": record_id},
        )
        return to_api(rows[0])

    def soft_delete(self, record_id: str) -> None:
        """Mark the row deleted (rows are never hard-deleted).

        Raises:
            NotFoundError: If no live row has this id
        """
        response = (
            self._table()
            .update({SOFT_DELETE_COLUMN: _now()})
            .eq("id", record_id)
            .is_(SOFT_DELETE_COLUMN, "null")
            .execute()
        )
        if not response.data:
            raise NotFoundError(f"{self.resource.entity.capitalize()} not found")
        logger.info(
            "Record soft-deleted",
            extra={"event": "record.deleted", "table": self.resource.table, "record_id": record_id},
        )


# ============================================================================
# Entity resources
# ============================================================================

ORGANIZATIONS = EntityResource(
    entity="organization",
    table="organizations",
    search_columns=("name", "industry", "description"),
    column_overrides={"city": "address->>city", "state": "address->>state"},
)

CONTACTS = EntityResource(
    entity="contact",
    table="contacts",
    search_columns=("first_name", "last_name", "email", "title"),
)

INTERACTIONS = EntityResource(
    entity="interaction",
    table="interactions",
    search_columns=("subject", "description"),
    range_filters={"startDate": ("scheduled_at", "gte"), "endDate": ("scheduled_at", "lte")},
    order_column="scheduled_at",
)

OPPORTUNITIES = EntityResource(
    entity="opportunity",
    table="opportunities",
    search_columns=("name", "description"),
    range_filters={
        "minValue": ("value", "gte"),
        "maxValue": ("value", "lte"),
        "expectedCloseStart": ("expected_close_date", "gte"),
        "expectedCloseEnd": ("expected_close_date", "lte"),
    },
)

PRODUCTS = EntityResource(
    entity="product",
    table="products",
    search_columns=("name", "sku", "description", "brand"),
    range_filters={"minPrice": ("unit_price", "gte"), "maxPrice": ("unit_price", "lte")},
    array_filters={"allergens": "allergens", "certifications": "certifications"},
)

USERS = EntityResource(
    entity="user",
    table="users",
    search_columns=("full_name", "email", "territory"),
)
