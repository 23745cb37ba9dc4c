"""Sales pipeline stage machine.

Opportunities move one stage at a time along a fixed order:

    lead -> proposal -> negotiation -> closed_won

with closed_lost as a terminal branch. Both closed stages are terminal: once
an opportunity is won or lost, no forward or backward control exists.

Stage moves are persisted as single-field patches (``status`` only) through
the mutation gateway. The adapter's subscription republishes the result, so
this module never edits local collection state.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog

from src.bizops.core.errors import InvalidStageTransitionError
from src.bizops.schemas import Client, Collection, Opportunity, OpportunityStage
from src.bizops.sync.gateway import MutationGateway

logger = structlog.get_logger(__name__)

# ── Stage Order ─────────────────────────────────────────────────────────────

STAGE_ORDER: tuple[OpportunityStage, ...] = (
    OpportunityStage.LEAD,
    OpportunityStage.PROPOSAL,
    OpportunityStage.NEGOTIATION,
    OpportunityStage.CLOSED_WON,
    OpportunityStage.CLOSED_LOST,
)

# Linear path that advance/retreat walk along.
_LINEAR: tuple[OpportunityStage, ...] = STAGE_ORDER[:4]

TERMINAL_STAGES: frozenset[OpportunityStage] = frozenset(
    {OpportunityStage.CLOSED_WON, OpportunityStage.CLOSED_LOST}
)


def is_terminal(stage: OpportunityStage) -> bool:
    return stage in TERMINAL_STAGES


def next_stage(stage: OpportunityStage) -> OpportunityStage | None:
    """Stage after ``stage``, or None from a terminal stage."""
    if is_terminal(stage):
        return None
    return _LINEAR[_LINEAR.index(stage) + 1]


def previous_stage(stage: OpportunityStage) -> OpportunityStage | None:
    """Stage before ``stage``, or None from ``lead`` and terminal stages."""
    if is_terminal(stage):
        return None
    idx = _LINEAR.index(stage)
    return _LINEAR[idx - 1] if idx > 0 else None


def can_advance(stage: OpportunityStage) -> bool:
    return next_stage(stage) is not None


def can_retreat(stage: OpportunityStage) -> bool:
    return previous_stage(stage) is not None


def validate_move(from_stage: OpportunityStage, to_stage: OpportunityStage) -> None:
    """Allow only single adjacent steps out of non-terminal stages.

    Raises:
        InvalidStageTransitionError: If the move is not allowed.
    """
    if to_stage not in (next_stage(from_stage), previous_stage(from_stage)):
        raise InvalidStageTransitionError(from_stage, to_stage)


# ── Grouping ────────────────────────────────────────────────────────────────


def group_by_stage(
    opportunities: Iterable[Opportunity],
) -> dict[OpportunityStage, tuple[Opportunity, ...]]:
    """Partition opportunities into one bucket per stage, in stage order.

    Every stage is present, possibly empty. Bucket order follows the input.
    """
    buckets: dict[OpportunityStage, list[Opportunity]] = {s: [] for s in STAGE_ORDER}
    for opp in opportunities:
        buckets[opp.status].append(opp)
    return {stage: tuple(items) for stage, items in buckets.items()}


def stage_counts(opportunities: Iterable[Opportunity]) -> dict[OpportunityStage, int]:
    return {stage: len(items) for stage, items in group_by_stage(opportunities).items()}


# ── Weak client references ──────────────────────────────────────────────────


def client_for(opportunity: Opportunity, clients: Sequence[Client]) -> Client | None:
    """Current client record, or None when the reference is dangling."""
    if not opportunity.client_id:
        return None
    return next((c for c in clients if c.id == opportunity.client_id), None)


def display_client_name(opportunity: Opportunity, clients: Sequence[Client]) -> str:
    """Name to show for the opportunity's client.

    Uses the live client when it still exists, otherwise the creation-time
    snapshot, otherwise an empty string. Never raises.
    """
    client = client_for(opportunity, clients)
    if client is not None:
        return client.name
    return opportunity.client_name or ""


def opportunities_for_client(
    client_id: str, opportunities: Iterable[Opportunity]
) -> tuple[Opportunity, ...]:
    return tuple(o for o in opportunities if o.client_id == client_id)


# ── State Machine ───────────────────────────────────────────────────────────


class PipelineStateMachine:
    """Stage controls for opportunities, written through the gateway.

    Args:
        gateway: Mutation gateway used for ``status`` patches.
    """

    def __init__(self, gateway: MutationGateway) -> None:
        self._gateway = gateway

    async def advance(self, opportunity: Opportunity) -> OpportunityStage:
        """Move to the next stage. Raises from terminal stages."""
        target = next_stage(opportunity.status)
        if target is None:
            raise InvalidStageTransitionError(opportunity.status, None)
        return await self._move(opportunity, target)

    async def retreat(self, opportunity: Opportunity) -> OpportunityStage:
        """Move to the previous stage. Raises from ``lead`` and terminal stages."""
        target = previous_stage(opportunity.status)
        if target is None:
            raise InvalidStageTransitionError(opportunity.status, None)
        return await self._move(opportunity, target)

    async def move(
        self, opportunity: Opportunity, target: OpportunityStage | str
    ) -> OpportunityStage:
        """Move to an explicit adjacent stage."""
        target = OpportunityStage(target)
        validate_move(opportunity.status, target)
        return await self._move(opportunity, target)

    async def _move(
        self, opportunity: Opportunity, target: OpportunityStage
    ) -> OpportunityStage:
        await self._gateway.patch(
            Collection.OPPORTUNITIES, opportunity.id, {"status": target.value}
        )
        logger.info(
            "pipeline.stage_moved",
            opportunity_id=opportunity.id,
            from_stage=opportunity.status.value,
            to_stage=target.value,
        )
        return target
