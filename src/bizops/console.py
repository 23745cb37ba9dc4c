"""Operations console facade.

Wires authentication, the access gate, the entity store adapter, the
mutation gateway and the pipeline/board state machines into a single object
the presentation layer drives. Reads come straight from the adapter; every
mutation is scheduled and returned as a PendingAction.

Mutations require an authorized session: calling one otherwise raises
AuthorizationError immediately, before anything is scheduled.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import structlog

from src.bizops.access.gate import AccessGate
from src.bizops.auth.base import AuthProvider
from src.bizops.auth.firebase import CredentialsPrompt, FirebasePasswordAuthProvider
from src.bizops.board.tasks import TaskBoard
from src.bizops.config import Settings, get_settings
from src.bizops.core.actions import PendingAction
from src.bizops.pipeline.contacts import ContactHistoryEditor
from src.bizops.pipeline.stages import PipelineStateMachine
from src.bizops.schemas import Client, Collection, OpportunityStage
from src.bizops.store.base import RealtimeStore
from src.bizops.store.firebase import FirebaseRestStore
from src.bizops.sync.adapter import EntityStoreAdapter
from src.bizops.sync.forms import FORM_MODELS, FormSession
from src.bizops.sync.gateway import Confirm, MutationGateway
from src.bizops.views.aggregates import DashboardSummary, dashboard_summary, search_clients

logger = structlog.get_logger(__name__)


class OperationsConsole:
    """Top-level console object.

    Args:
        store: Realtime store holding all collections.
        auth: Authentication provider.
        allowed_emails: Allow-list of e-mail addresses.
    """

    def __init__(
        self,
        store: RealtimeStore,
        auth: AuthProvider,
        allowed_emails: Sequence[str],
    ) -> None:
        self.store = store
        self.auth = auth
        self.adapter = EntityStoreAdapter(store)
        self.gateway = MutationGateway(store)
        self.gate = AccessGate(auth, store, self.adapter, allowed_emails)
        self.pipeline = PipelineStateMachine(self.gateway)
        self.forms: dict[Collection, FormSession] = {
            collection: FormSession(collection, self.gateway, self.adapter)
            for collection in FORM_MODELS
        }
        # One live board and one live contact editor; each holds an adapter listener.
        self._view_releases: dict[str, Callable[[], None]] = {}

    @classmethod
    def from_settings(
        cls,
        prompt: CredentialsPrompt,
        settings: Settings | None = None,
    ) -> OperationsConsole:
        """Build a console against Firebase using configured credentials.

        Raises:
            ConfigurationError: If any store credential is missing.
        """
        settings = settings or get_settings()
        settings.require_store_credentials()
        auth = FirebasePasswordAuthProvider(settings.FIREBASE_API_KEY, prompt)
        store = FirebaseRestStore(
            settings.FIREBASE_DATABASE_URL,
            token_provider=auth.id_token,
            timeout=settings.STORE_TIMEOUT,
            max_retries=settings.STORE_READ_MAX_RETRIES,
        )
        logger.info(
            "console.configured",
            project=settings.FIREBASE_PROJECT_ID,
            environment=settings.ENVIRONMENT.value,
        )
        return cls(store, auth, settings.allowed_emails)

    # ── Lifecycle ───────────────────────────────────────────────────────

    async def start(self) -> None:
        self.gate.start()
        await self.gate.wait_settled()

    async def stop(self) -> None:
        for view in list(self._view_releases):
            self._close_view(view)
        await self.gate.stop()

    def sign_in(self) -> PendingAction:
        return PendingAction("auth.sign_in", self._sign_in())

    async def _sign_in(self):
        identity = await self.auth.begin_interactive_login()
        await self.gate.wait_settled()
        return identity

    def sign_out(self) -> PendingAction:
        return PendingAction("auth.sign_out", self._sign_out())

    async def _sign_out(self) -> None:
        await self.auth.end_session()
        await self.gate.wait_settled()

    # ── Records ─────────────────────────────────────────────────────────

    def form(self, collection: Collection | str) -> FormSession:
        return self.forms[Collection(collection)]

    def submit(self, collection: Collection | str) -> PendingAction[str]:
        self.gate.require_authorized()
        collection = Collection(collection)
        return PendingAction(f"{collection.value}.submit", self.forms[collection].submit())

    def delete(
        self,
        collection: Collection | str,
        record_id: str,
        confirm: Confirm | None = None,
    ) -> PendingAction[bool]:
        self.gate.require_authorized()
        collection = Collection(collection)
        return PendingAction(
            f"{collection.value}.delete",
            self.gateway.delete(collection, record_id, confirm=confirm),
        )

    # ── Pipeline ────────────────────────────────────────────────────────

    def _opportunity(self, opportunity_id: str):
        opportunity = self.adapter.find(Collection.OPPORTUNITIES, opportunity_id)
        if opportunity is None:
            raise KeyError(f"Opportunity '{opportunity_id}' not found")
        return opportunity

    def advance_opportunity(self, opportunity_id: str) -> PendingAction[OpportunityStage]:
        self.gate.require_authorized()
        opportunity = self._opportunity(opportunity_id)
        return PendingAction("pipeline.advance", self.pipeline.advance(opportunity))

    def retreat_opportunity(self, opportunity_id: str) -> PendingAction[OpportunityStage]:
        self.gate.require_authorized()
        opportunity = self._opportunity(opportunity_id)
        return PendingAction("pipeline.retreat", self.pipeline.retreat(opportunity))

    def move_opportunity(
        self, opportunity_id: str, target: OpportunityStage | str
    ) -> PendingAction[OpportunityStage]:
        self.gate.require_authorized()
        opportunity = self._opportunity(opportunity_id)
        return PendingAction(
            "pipeline.move", self.pipeline.move(opportunity, OpportunityStage(target))
        )

    def contact_editor(self, opportunity_id: str) -> ContactHistoryEditor:
        """Editor for one opportunity, kept in step with later snapshots."""
        self.gate.require_authorized()
        editor = ContactHistoryEditor(self.gateway, self._opportunity(opportunity_id))
        self._follow("contacts", Collection.OPPORTUNITIES, editor.sync)
        return editor

    def close_contact_editor(self) -> None:
        self._close_view("contacts")

    # ── Projects ────────────────────────────────────────────────────────

    def open_project_board(self, project_id: str) -> TaskBoard:
        """Task board for one project, re-derived on every Projects snapshot."""
        self.gate.require_authorized()
        project = self.adapter.find(Collection.PROJECTS, project_id)
        if project is None:
            raise KeyError(f"Project '{project_id}' not found")
        board = TaskBoard(self.gateway, project)
        self._follow("board", Collection.PROJECTS, board.sync)
        return board

    def close_project_board(self) -> None:
        self._close_view("board")

    def _follow(
        self, view: str, collection: Collection, sync: Callable[[Any], None]
    ) -> None:
        """Keep ``sync`` fed with snapshots, replacing the previous ``view``."""

        def listener(changed: Collection, entities: tuple[Any, ...]) -> None:
            if changed == collection:
                sync(entities)

        self._close_view(view)
        self._view_releases[view] = self.adapter.on_change(listener)

    def _close_view(self, view: str) -> None:
        release = self._view_releases.pop(view, None)
        if release is not None:
            release()
            logger.debug("console.view_closed", view=view)

    # ── Views ───────────────────────────────────────────────────────────

    def dashboard(self) -> DashboardSummary:
        return dashboard_summary(
            self.adapter.transactions,
            self.adapter.projects,
            self.adapter.opportunities,
        )

    def search_clients(self, query: str) -> tuple[Client, ...]:
        return search_clients(self.adapter.clients, query)
