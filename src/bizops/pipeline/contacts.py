"""Contact history owned by an opportunity.

Contact records have no storage path of their own; they live in the
opportunity's ``contactHistory`` list. Every add / edit / remove is applied
to the locally held opportunity first and then the whole opportunity,
full list included, is written back with update-by-replace.

The editor re-derives its opportunity from each Opportunities snapshot, so
the server copy always wins once it arrives.
"""

from __future__ import annotations

import secrets
from collections.abc import Iterable
from typing import Any

import structlog
from pydantic import ValidationError

from src.bizops.core.errors import FormValidationError
from src.bizops.schemas import Collection, ContactForm, ContactHistory, Opportunity
from src.bizops.sync.gateway import MutationGateway

logger = structlog.get_logger(__name__)


def new_contact_id() -> str:
    return secrets.token_hex(8)


def _validate(data: dict[str, Any]) -> ContactForm:
    try:
        return ContactForm.model_validate(data)
    except ValidationError as exc:
        raise FormValidationError.from_pydantic(exc) from exc


class ContactHistoryEditor:
    """Optimistic editor for one opportunity's contact history.

    Args:
        gateway: Gateway used to write the opportunity back.
        opportunity: The opportunity currently open in the detail view.
    """

    def __init__(self, gateway: MutationGateway, opportunity: Opportunity) -> None:
        self._gateway = gateway
        self.opportunity = opportunity

    @property
    def contacts(self) -> tuple[ContactHistory, ...]:
        return tuple(self.opportunity.contact_history)

    def sync(self, opportunities: Iterable[Opportunity]) -> None:
        """Replace the local copy with the one from the latest snapshot."""
        for opp in opportunities:
            if opp.id == self.opportunity.id:
                self.opportunity = opp
                return

    async def add(self, **data: Any) -> ContactHistory:
        """Append a new contact. Notes are required; date defaults to today."""
        form = _validate(data)
        contact = ContactHistory(
            id=new_contact_id(), date=form.date, type=form.type, notes=form.notes
        )
        self._apply([*self.opportunity.contact_history, contact])
        await self._persist("add", contact.id)
        return contact

    async def update(self, contact_id: str, **data: Any) -> ContactHistory:
        """Replace the contact with ``contact_id``. Raises KeyError if unknown."""
        form = _validate(data)
        if not any(c.id == contact_id for c in self.opportunity.contact_history):
            raise KeyError(contact_id)
        updated = ContactHistory(id=contact_id, date=form.date, type=form.type, notes=form.notes)
        self._apply(
            [updated if c.id == contact_id else c for c in self.opportunity.contact_history]
        )
        await self._persist("update", contact_id)
        return updated

    async def remove(self, contact_id: str) -> None:
        self._apply([c for c in self.opportunity.contact_history if c.id != contact_id])
        await self._persist("remove", contact_id)

    def _apply(self, history: list[ContactHistory]) -> None:
        self.opportunity = self.opportunity.model_copy(update={"contact_history": history})

    async def _persist(self, action: str, contact_id: str) -> None:
        body = self.opportunity.to_store()
        await self._gateway.replace(Collection.OPPORTUNITIES, self.opportunity.id, body)
        logger.info(
            "contacts.persisted",
            action=action,
            opportunity_id=self.opportunity.id,
            contact_id=contact_id,
            total=len(self.opportunity.contact_history),
        )
