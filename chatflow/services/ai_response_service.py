# chatflow/services/ai_response_service.py
"""
Response generator for AI response nodes, backed by GPTService.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional
import logging

from chatflow.core.prompt_manager import PromptManager, PromptType, get_prompt_manager
from chatflow.services.gpt_service import GPTService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentProfile:
    """An AI agent a node can link to by reference"""
    agent_id: str
    agent_name: str
    personality: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "AgentProfile":
        """Build a profile from a stored agent record (``id``, ``name``, ``personality``)."""
        agent_id = record.get("id") or record.get("agent_id")
        if not agent_id:
            raise ValueError(f"Agent record without id: {record}")
        return cls(
            agent_id=str(agent_id),
            agent_name=record.get("name") or record.get("agent_name") or str(agent_id),
            personality=record.get("personality") or "",
        )


def build_agent_directory(records: Iterable[Dict[str, Any]]) -> Dict[str, AgentProfile]:
    """
    Index agent records by id.

    Records without an id are skipped with a warning.
    """
    directory: Dict[str, AgentProfile] = {}
    for record in records:
        try:
            profile = AgentProfile.from_record(record)
        except ValueError as e:
            logger.warning(f"Skipping agent record: {e}")
            continue
        directory[profile.agent_id] = profile
    return directory


class AIResponseService:
    """
    Generates the bot reply of an AI response node.

    Nodes linked to a known agent get that agent's persona as system
    prompt; everything else uses the default assistant prompt.
    """

    def __init__(
        self,
        gpt_service: GPTService,
        prompt_manager: Optional[PromptManager] = None,
        agent_profiles: Optional[Dict[str, AgentProfile]] = None
    ):
        self.gpt_service = gpt_service
        self.prompt_manager = prompt_manager or get_prompt_manager()
        self.agent_profiles = agent_profiles if agent_profiles is not None else {}

    def register_agent(self, profile: AgentProfile) -> None:
        self.agent_profiles[profile.agent_id] = profile

    def build_system_prompt(self, agent_ref: Optional[str] = None) -> str:
        profile = self.agent_profiles.get(agent_ref) if agent_ref else None
        if profile is None:
            if agent_ref:
                logger.warning(f"Unknown agent reference {agent_ref}, using default prompt")
            return self.prompt_manager.get_prompt(PromptType.GENERATION_DEFAULT_SYSTEM)

        return self.prompt_manager.get_prompt(
            PromptType.GENERATION_AGENT_SYSTEM,
            agent_name=profile.agent_name,
            personality=profile.personality
        )

    async def generate(
        self,
        prompt: str,
        agent_ref: Optional[str] = None,
        max_tokens: Optional[int] = None
    ) -> str:
        """
        Raises:
            GPTServiceError: If the completion fails
        """
        return await self.gpt_service.complete(
            prompt,
            system_prompt=self.build_system_prompt(agent_ref),
            max_tokens=max_tokens
        )
