"""Edit-form sessions for top-level records.

A FormSession holds the in-flight input for one record kind, in create or
edit mode, and submits it through the mutation gateway:

1. validate locally -- invalid input raises FormValidationError and nothing
   is written;
2. build the stored body (client snapshot fields are captured from the
   current Clients collection when the client changes);
3. create or replace through the gateway;
4. on StoreWriteError keep every field so the user can retry;
5. on success reset to defaults.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import BaseModel, ValidationError

from src.bizops.core.errors import FormValidationError, StoreWriteError
from src.bizops.schemas import (
    Client,
    ClientForm,
    Collection,
    Opportunity,
    OpportunityForm,
    Project,
    ProjectForm,
    TransactionForm,
)
from src.bizops.sync.adapter import EntityStoreAdapter
from src.bizops.sync.gateway import MutationGateway

logger = structlog.get_logger(__name__)

FORM_MODELS: dict[Collection, type[BaseModel]] = {
    Collection.CLIENTS: ClientForm,
    Collection.OPPORTUNITIES: OpportunityForm,
    Collection.PROJECTS: ProjectForm,
    Collection.TRANSACTIONS: TransactionForm,
}

# Record fields copied into the form when editing.
_EDITABLE_FIELDS: dict[Collection, tuple[str, ...]] = {
    Collection.CLIENTS: ("name", "email", "phone", "company", "cpf_cnpj"),
    Collection.OPPORTUNITIES: ("title", "client_id", "value", "status", "description"),
    Collection.PROJECTS: ("name", "client_id", "status", "budget", "start_date", "deadline"),
    Collection.TRANSACTIONS: (
        "type",
        "category",
        "amount",
        "date",
        "description",
        "is_recurring",
    ),
}


def _client_snapshot(client: Client | None, *fields: str) -> dict[str, str]:
    """Copy client fields for denormalized storage; dangling ids give ''."""
    return {f"client_{field}": getattr(client, field, "") if client else "" for field in fields}


class FormSession:
    """In-flight form state for one collection.

    Args:
        collection: Which top-level collection this form writes.
        gateway: Gateway performing the write.
        adapter: Source of current records (client lookups, edit targets).
    """

    def __init__(
        self,
        collection: Collection | str,
        gateway: MutationGateway,
        adapter: EntityStoreAdapter,
    ) -> None:
        self.collection = Collection(collection)
        if self.collection not in FORM_MODELS:
            raise ValueError(f"No form for collection '{self.collection.value}'")
        self._gateway = gateway
        self._adapter = adapter
        self.data: dict[str, Any] = {}
        self.editing_id: str | None = None
        self.errors: dict[str, str] = {}
        self.error: str | None = None

    # ── Editing ─────────────────────────────────────────────────────────

    def start_create(self, **initial: Any) -> None:
        self.reset()
        self.data.update(initial)

    def start_edit(self, record: Any) -> None:
        """Load an existing record into the form."""
        self.reset()
        self.editing_id = record.id
        for field in _EDITABLE_FIELDS[self.collection]:
            value = getattr(record, field)
            self.data[field] = value.value if hasattr(value, "value") else value
        if self.data.get("cpf_cnpj") is None:
            self.data.pop("cpf_cnpj", None)

    def update(self, **fields: Any) -> None:
        self.data.update(fields)

    def reset(self) -> None:
        self.data = {}
        self.editing_id = None
        self.errors = {}
        self.error = None

    @property
    def is_editing(self) -> bool:
        return self.editing_id is not None

    # ── Submit ──────────────────────────────────────────────────────────

    def validate(self) -> BaseModel:
        try:
            form = FORM_MODELS[self.collection].model_validate(self.data)
        except ValidationError as exc:
            raise FormValidationError.from_pydantic(exc) from exc
        self.errors = {}
        return form

    async def submit(self) -> str:
        """Validate and write. Returns the record id.

        Raises:
            FormValidationError: Input is invalid; nothing was written.
            StoreWriteError: The store rejected the write; input is kept.
        """
        try:
            form = self.validate()
        except FormValidationError as exc:
            self.errors = exc.errors
            logger.info(
                "form.invalid",
                collection=self.collection.value,
                fields=sorted(exc.errors),
            )
            raise

        existing = (
            self._adapter.find(self.collection, self.editing_id)
            if self.editing_id
            else None
        )
        body = self._build_body(form, existing)

        try:
            if self.editing_id:
                record_id = self.editing_id
                await self._gateway.replace(self.collection, record_id, body)
            else:
                record_id = await self._gateway.create(self.collection, body)
        except StoreWriteError as exc:
            self.error = str(exc)
            logger.warning(
                "form.submit_failed",
                collection=self.collection.value,
                editing_id=self.editing_id,
            )
            raise

        logger.info(
            "form.submitted",
            collection=self.collection.value,
            record_id=record_id,
            mode="edit" if self.editing_id else "create",
        )
        self.reset()
        return record_id

    # ── Body construction ───────────────────────────────────────────────

    def _build_body(self, form: BaseModel, existing: Any | None) -> dict[str, Any]:
        body = form.model_dump(mode="json", by_alias=True)

        if self.collection == Collection.CLIENTS:
            if not body.get("cpf_cnpj"):
                body.pop("cpf_cnpj", None)

        elif self.collection == Collection.OPPORTUNITIES:
            body.update(self._snapshot_fields(form, existing, "name", "email", "phone"))
            if isinstance(existing, Opportunity):
                body["contactHistory"] = [c.model_dump(mode="json") for c in existing.contact_history]
            else:
                body["contactHistory"] = []

        elif self.collection == Collection.PROJECTS:
            body.update(self._snapshot_fields(form, existing, "name"))
            if isinstance(existing, Project):
                body["tasks"] = {t.id: t.to_store() for t in existing.tasks}
            else:
                body["tasks"] = {}

        if existing is not None and getattr(existing, "created_at", None):
            body["created_at"] = existing.created_at
        return body

    def _snapshot_fields(
        self, form: BaseModel, existing: Any | None, *fields: str
    ) -> dict[str, str]:
        """Creation-time client copy; kept as-is while the client id is unchanged."""
        client_id = getattr(form, "client_id", "")
        if existing is not None and existing.client_id == client_id:
            return {f"client_{f}": getattr(existing, f"client_{f}") for f in fields}
        client = self._adapter.find(Collection.CLIENTS, client_id)
        return _client_snapshot(client, *fields)
