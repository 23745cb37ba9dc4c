"""Pydantic data models for the operations console.

Defines all structured types shared across the console:
- Enums: OpportunityStage, TaskStage, TaskPriority, ContactType,
  TransactionType, ProjectStatus, Collection
- Entities (as stored, one record per key): Client, Opportunity,
  ContactHistory, Project, Task, Transaction, User
- Form inputs (validated before any write): ClientForm, OpportunityForm,
  ProjectForm, TransactionForm, TaskForm, ContactForm

Entities are frozen; every snapshot publishes fresh instances and optimistic
changes go through ``model_copy``. Field aliases match the stored document
keys (``contactHistory``, ``startDate``, ``dueDate``, ``createdAt``).
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = structlog.get_logger(__name__)

# ── Enums ───────────────────────────────────────────────────────────────────


class Collection(str, Enum):
    """Top-level collection paths in the realtime store."""

    CLIENTS = "clients"
    OPPORTUNITIES = "opportunities"
    PROJECTS = "projects"
    TRANSACTIONS = "transactions"
    USERS = "users"


class OpportunityStage(str, Enum):
    """Sales pipeline stage for an opportunity."""

    LEAD = "lead"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class TaskStage(str, Enum):
    """Board column for a project task."""

    BACKLOG = "backlog"
    IN_PROGRESS = "em_andamento"
    DONE = "concluida"
    REVIEW = "revisao"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ContactType(str, Enum):
    """Channel used for a recorded contact with a prospect."""

    EMAIL = "email"
    PHONE = "phone"
    WHATSAPP = "whatsapp"
    VISIT = "visit"
    OTHER = "other"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    WON = "won"
    LOST = "lost"


# ── Helpers ─────────────────────────────────────────────────────────────────


def parse_amount(raw: Any) -> float:
    """Parse a currency amount typed into a form.

    Accepts numbers and text such as ``"1500"``, ``"1500.50"``, ``"1500,50"``
    or ``"1.500,50"``. Empty, non-numeric, NaN, infinite and negative input is
    rejected with ValueError; nothing is ever clamped.
    """
    if isinstance(raw, bool):
        raise ValueError("amount must be a number")
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw or "").strip().replace(" ", "")
        if not text:
            raise ValueError("amount is required")
        if "," in text:
            # Decimal comma; dots are thousands separators.
            text = text.replace(".", "").replace(",", ".")
        try:
            value = float(text)
        except ValueError:
            raise ValueError(f"'{raw}' is not a number") from None
    if not math.isfinite(value):
        raise ValueError("amount must be a finite number")
    if value < 0:
        raise ValueError("amount must not be negative")
    return value


def _require_iso_date(value: str, *, allow_empty: bool) -> str:
    value = (value or "").strip()
    if not value:
        if allow_empty:
            return ""
        raise ValueError("date is required")
    try:
        date.fromisoformat(value[:10])
    except ValueError:
        raise ValueError(f"'{value}' is not an ISO date (YYYY-MM-DD)") from None
    return value


def _keyed_to_list(value: Any) -> Any:
    """Normalize an embedded child collection to a list.

    Children may be stored as a list (written whole with the parent) or as a
    mapping keyed by child id (written at ``parent/{id}/child/{childId}``).
    Mapping keys are attached as ``id`` when the value lacks one.
    """
    if value is None:
        return []
    if isinstance(value, dict):
        items = []
        for key, body in value.items():
            if isinstance(body, dict):
                items.append({"id": key, **body})
        return items
    if isinstance(value, list):
        return [item for item in value if item is not None]
    return value


def _valid_children(value: Any, model: type[BaseModel], field: str) -> Any:
    """Validate embedded children one by one, dropping the ones that fail.

    A stray partial write (a patch landing on a child another session just
    deleted) leaves a fragment without required fields. Only that child is
    skipped; the parent record stays visible.
    """
    items = _keyed_to_list(value)
    if not isinstance(items, list):
        return items
    children = []
    for item in items:
        if isinstance(item, model):
            children.append(item)
            continue
        try:
            children.append(model.model_validate(item))
        except ValidationError as exc:
            child_id = item.get("id") if isinstance(item, dict) else None
            logger.warning(
                "schemas.child_invalid",
                field=field,
                child_id=child_id,
                errors=exc.error_count(),
            )
    return children


def today_iso() -> str:
    return date.today().isoformat()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class _Entity(BaseModel):
    """Base for stored records: frozen, alias-aware, tolerant of extra keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str

    def to_store(self) -> dict[str, Any]:
        """Serialize to the stored document shape (aliases, JSON types)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Entities ────────────────────────────────────────────────────────────────


class Client(_Entity):
    name: str
    email: str = ""
    phone: str = ""
    company: str = ""
    cpf_cnpj: str | None = None
    created_at: str | None = None


class ContactHistory(BaseModel):
    """One recorded contact on an opportunity. Owned by the opportunity."""

    model_config = ConfigDict(frozen=True)

    id: str
    date: str
    type: ContactType = ContactType.EMAIL
    notes: str = ""


class Opportunity(_Entity):
    """A sales opportunity moving through the pipeline.

    ``client_name``, ``client_email`` and ``client_phone`` are copies taken
    when the opportunity was created. They are a historical snapshot, not the
    client's current data, and are never re-joined against Clients.
    """

    title: str
    client_id: str = ""
    client_name: str = ""
    client_email: str = ""
    client_phone: str = ""
    value: float = Field(default=0.0, ge=0)
    status: OpportunityStage = OpportunityStage.LEAD
    description: str = ""
    contact_history: list[ContactHistory] = Field(
        default_factory=list, alias="contactHistory"
    )
    created_at: str | None = None

    @field_validator("contact_history", mode="before")
    @classmethod
    def _normalize_history(cls, value: Any) -> Any:
        return _valid_children(value, ContactHistory, "contactHistory")


class Task(BaseModel):
    """A task embedded in a project. Ids are client-generated tokens."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    title: str
    description: str = ""
    status: TaskStage = TaskStage.BACKLOG
    priority: TaskPriority | None = None
    assignee: str | None = None
    due_date: str | None = Field(default=None, alias="dueDate")

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Project(_Entity):
    """A delivery project. ``client_name`` is a creation-time snapshot."""

    name: str
    client_id: str = ""
    client_name: str = ""
    status: ProjectStatus = ProjectStatus.ACTIVE
    budget: float = Field(default=0.0, ge=0)
    start_date: str = Field(default="", alias="startDate")
    deadline: str = ""
    tasks: list[Task] = Field(default_factory=list)
    created_at: str | None = None

    @field_validator("tasks", mode="before")
    @classmethod
    def _normalize_tasks(cls, value: Any) -> Any:
        return _valid_children(value, Task, "tasks")


class Transaction(_Entity):
    type: TransactionType
    category: str = ""
    amount: float = Field(ge=0)
    date: str
    description: str = ""
    is_recurring: bool = False
    created_at: str | None = None


class User(_Entity):
    email: str
    name: str = ""
    created_at: str | None = Field(default=None, alias="createdAt")


ENTITY_MODELS: dict[Collection, type[_Entity]] = {
    Collection.CLIENTS: Client,
    Collection.OPPORTUNITIES: Opportunity,
    Collection.PROJECTS: Project,
    Collection.TRANSACTIONS: Transaction,
    Collection.USERS: User,
}


# ── Form Inputs ─────────────────────────────────────────────────────────────


class _Form(BaseModel):
    """Raw form input. Validation happens here, before any write."""

    model_config = ConfigDict(
        populate_by_name=True, str_strip_whitespace=True, validate_default=True
    )


class ClientForm(_Form):
    name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    cpf_cnpj: str = ""

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        if not value:
            raise ValueError("name is required")
        return value


class OpportunityForm(_Form):
    title: str = ""
    client_id: str = ""
    value: float | str = ""
    status: OpportunityStage = OpportunityStage.LEAD
    description: str = ""

    @field_validator("title")
    @classmethod
    def _title_required(cls, value: str) -> str:
        if not value:
            raise ValueError("title is required")
        return value

    @field_validator("value", mode="before")
    @classmethod
    def _parse_value(cls, value: Any) -> float:
        return parse_amount(value)


class ProjectForm(_Form):
    name: str = ""
    client_id: str = ""
    status: ProjectStatus = ProjectStatus.ACTIVE
    budget: float | str = ""
    start_date: str = Field(default="", alias="startDate")
    deadline: str = ""

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        if not value:
            raise ValueError("name is required")
        return value

    @field_validator("budget", mode="before")
    @classmethod
    def _parse_budget(cls, value: Any) -> float:
        return parse_amount(value)

    @field_validator("start_date", "deadline")
    @classmethod
    def _iso_dates(cls, value: str) -> str:
        return _require_iso_date(value, allow_empty=True)


class TransactionForm(_Form):
    type: TransactionType = TransactionType.INCOME
    category: str = ""
    amount: float | str = ""
    date: str = Field(default_factory=today_iso)
    description: str = ""
    is_recurring: bool = False

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> float:
        return parse_amount(value)

    @field_validator("date")
    @classmethod
    def _iso_date(cls, value: str) -> str:
        return _require_iso_date(value, allow_empty=False)


class TaskForm(_Form):
    title: str = ""
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee: str = ""
    due_date: str = Field(default_factory=today_iso, alias="dueDate")

    @field_validator("title")
    @classmethod
    def _title_required(cls, value: str) -> str:
        if not value:
            raise ValueError("title is required")
        return value


class ContactForm(_Form):
    date: str = ""
    type: ContactType = ContactType.EMAIL
    notes: str = ""

    @field_validator("notes")
    @classmethod
    def _notes_required(cls, value: str) -> str:
        if not value:
            raise ValueError("notes are required")
        return value

    @field_validator("date")
    @classmethod
    def _default_today(cls, value: str) -> str:
        return _require_iso_date(value, allow_empty=True) or today_iso()
