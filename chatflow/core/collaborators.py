# chatflow/core/collaborators.py
"""
Capabilities the interpreter calls out to.

Each one is optional. When a capability is missing, the interpreter
only describes the step in the transcript (tags, funnel moves, handoff,
webhooks) or emits a clearly marked simulation (AI nodes).
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from chatflow.models.flow_models import Intent


@runtime_checkable
class TagService(Protocol):
    async def add_tag(self, tag_name: str) -> None: ...

    async def remove_tag(self, tag_name: str) -> None: ...


@runtime_checkable
class FunnelService(Protocol):
    async def move_stage(self, funnel_id: str, stage_id: Optional[str]) -> None: ...


@runtime_checkable
class HandoffService(Protocol):
    async def transfer_to_human(self, mode: str) -> None: ...


@runtime_checkable
class HttpEgress(Protocol):
    async def perform_request(
        self,
        url: str,
        method: str,
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]: ...


@runtime_checkable
class ResponseGenerator(Protocol):
    async def generate(
        self,
        prompt: str,
        agent_ref: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str: ...


@runtime_checkable
class IntentClassifier(Protocol):
    async def classify_intent(self, utterance: str, intents: List[Intent], agent_ref: Optional[str] = None) -> str:
        """Return the matching intent id or ``"none"``; ``agent_ref`` names the agent giving context."""
        ...


# Called with the node id every time a node starts processing; may be sync or async
NodeEnteredHook = Callable[[str], Any]


@dataclass
class FlowCollaborators:
    tags: Optional[TagService] = None
    funnels: Optional[FunnelService] = None
    handoff: Optional[HandoffService] = None
    http: Optional[HttpEgress] = None
    generator: Optional[ResponseGenerator] = None
    intent_classifier: Optional[IntentClassifier] = None
    on_node_entered: Optional[NodeEnteredHook] = None
