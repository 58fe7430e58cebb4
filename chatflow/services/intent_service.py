# chatflow/services/intent_service.py
"""
Intent classifier for AI-intent condition nodes.

The model is asked to answer with one intent id or NONE. Models do not
always comply, so the answer is resolved leniently: an intent id anywhere
in the answer wins, then a 1-based list index.
"""
from typing import Dict, List, Optional, Sequence
import logging
import re

from chatflow.core.prompt_manager import PromptManager, PromptType, get_prompt_manager
from chatflow.models.flow_models import NO_INTENT, Intent
from chatflow.services.ai_response_service import AgentProfile
from chatflow.services.gpt_service import GPTService

logger = logging.getLogger(__name__)

_FIRST_NUMBER = re.compile(r"\d+")


def resolve_intent_answer(answer: str, intents: Sequence[Intent]) -> str:
    """
    Map a raw model answer to an intent id or ``"none"``.

    Examples:
        >>> intents = [Intent(id="buy"), Intent(id="cancel")]
        >>> resolve_intent_answer('"cancel"', intents)
        'cancel'
        >>> resolve_intent_answer("1", intents)
        'buy'
        >>> resolve_intent_answer("NONE", intents)
        'none'
    """
    answer = (answer or "").strip()
    if not answer or "NONE" in answer.upper():
        return NO_INTENT

    for intent in intents:
        if intent.id and intent.id in answer:
            return intent.id

    match = _FIRST_NUMBER.search(answer)
    if match:
        index = int(match.group(0)) - 1
        if 0 <= index < len(intents):
            return intents[index].id

    return NO_INTENT


class IntentClassificationService:
    """
    Classifies an utterance into one of a condition node's intents.

    A condition node may name the agent whose persona frames the question
    (its ``aiConfigId``); profiles are looked up in the shared agent
    directory.
    """

    def __init__(
        self,
        gpt_service: GPTService,
        prompt_manager: Optional[PromptManager] = None,
        agent_profiles: Optional[Dict[str, AgentProfile]] = None,
        temperature: float = 0.1,
        max_tokens: int = 50
    ):
        """
        Args:
            gpt_service: Completion backend
            prompt_manager: Source of the analyser prompts
            agent_profiles: Agent directory, keyed by agent id
        """
        self.gpt_service = gpt_service
        self.prompt_manager = prompt_manager or get_prompt_manager()
        self.agent_profiles = agent_profiles if agent_profiles is not None else {}
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _agent_context(self, agent_ref: Optional[str]) -> str:
        if not agent_ref:
            return ""

        profile = self.agent_profiles.get(agent_ref)
        if profile is None:
            logger.warning(f"Unknown agent reference {agent_ref}, classifying without agent context")
            return ""

        return self.prompt_manager.get_prompt(
            PromptType.INTENT_AGENT_CONTEXT,
            agent_name=profile.agent_name,
            personality=profile.personality
        )

    def build_prompts(self, utterance: str, intents: Sequence[Intent], agent_ref: Optional[str] = None):
        """Return the (system, user) prompt pair for one classification."""
        intents_list = "\n".join(
            self.prompt_manager.get_prompt(
                PromptType.INTENT_LINE,
                index=position,
                intent_id=intent.id,
                label=intent.label,
                description=intent.description
            )
            for position, intent in enumerate(intents, 1)
        )

        system_prompt = self.prompt_manager.get_prompt(
            PromptType.INTENT_SYSTEM,
            context=self._agent_context(agent_ref)
        )
        user_prompt = self.prompt_manager.get_prompt(
            PromptType.INTENT_USER,
            intents_list=intents_list,
            user_message=utterance
        )
        return system_prompt, user_prompt

    async def classify_intent(
        self,
        utterance: str,
        intents: List[Intent],
        agent_ref: Optional[str] = None
    ) -> str:
        """
        Raises:
            GPTServiceError: If the completion fails
        """
        if not utterance or not utterance.strip() or not intents:
            logger.info("Nothing to classify, returning no intent")
            return NO_INTENT

        system_prompt, user_prompt = self.build_prompts(utterance, intents, agent_ref=agent_ref)
        answer = await self.gpt_service.complete(
            user_prompt,
            system_prompt=system_prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens
        )

        intent_id = resolve_intent_answer(answer, intents)
        logger.info(f"Intent answer {answer!r} resolved to {intent_id}")
        return intent_id
