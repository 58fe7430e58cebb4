# chatflow/services/crm_service.py
"""
Recording CRM collaborator for preview runs.

Implements the tag, funnel and handoff capabilities without touching any
real contact: every call is recorded so the preview (and tests) can show
what a live run would have changed.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class CRMOperation:
    operation: str
    arguments: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryCRMService:
    """
    Tags, funnel stage and handoff state of a single simulated contact.
    """

    def __init__(self):
        self.tags: List[str] = []
        self.funnel_id: Optional[str] = None
        self.stage_id: Optional[str] = None
        self.handoffs: List[str] = []
        self.history: List[CRMOperation] = []

    def _record(self, operation: str, **arguments) -> None:
        self.history.append(CRMOperation(operation=operation, arguments=arguments))
        logger.debug(f"CRM {operation} {arguments}")

    async def add_tag(self, tag_name: str) -> None:
        if tag_name not in self.tags:
            self.tags.append(tag_name)
        self._record("add_tag", tag_name=tag_name)

    async def remove_tag(self, tag_name: str) -> None:
        if tag_name in self.tags:
            self.tags.remove(tag_name)
        self._record("remove_tag", tag_name=tag_name)

    async def move_stage(self, funnel_id: str, stage_id: Optional[str]) -> None:
        self.funnel_id = funnel_id
        self.stage_id = stage_id
        self._record("move_stage", funnel_id=funnel_id, stage_id=stage_id)

    async def transfer_to_human(self, mode: str) -> None:
        self.handoffs.append(mode)
        self._record("transfer_to_human", mode=mode)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "tags": list(self.tags),
            "funnel_id": self.funnel_id,
            "stage_id": self.stage_id,
            "handoffs": list(self.handoffs),
            "operations": len(self.history),
        }

    def reset(self) -> None:
        self.tags.clear()
        self.funnel_id = None
        self.stage_id = None
        self.handoffs.clear()
        self.history.clear()
