"""Sales pipeline -- opportunity stage machine and contact history.

Stages run lead -> proposal -> negotiation -> closed_won, with closed_lost
as a terminal branch. Contact history is an owned child list written back
with its parent.
"""

from src.bizops.pipeline.contacts import ContactHistoryEditor
from src.bizops.pipeline.stages import (
    STAGE_ORDER,
    TERMINAL_STAGES,
    PipelineStateMachine,
    can_advance,
    can_retreat,
    client_for,
    display_client_name,
    group_by_stage,
    next_stage,
    opportunities_for_client,
    previous_stage,
    stage_counts,
)

__all__ = [
    "STAGE_ORDER",
    "TERMINAL_STAGES",
    "ContactHistoryEditor",
    "PipelineStateMachine",
    "can_advance",
    "can_retreat",
    "client_for",
    "display_client_name",
    "group_by_stage",
    "next_stage",
    "opportunities_for_client",
    "previous_stage",
    "stage_counts",
]
