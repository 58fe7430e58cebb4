# chatflow/core/prompt_manager.py
"""
Central catalog for every text the engine shows or sends to a model.

Transcript texts and AI prompts live in ``chatflow.prompts``; this manager
loads them once and formats them by key.
"""
from typing import Dict, Any, Optional, List
from enum import Enum
from dataclasses import dataclass
import logging
import re

from chatflow.core.exceptions import PromptError

logger = logging.getLogger(__name__)


class PromptCategory(str, Enum):
    """Categories for organizing prompts"""
    TRANSCRIPT = "transcript"
    INTENT = "intent"
    GENERATION = "generation"


class PromptType(str, Enum):
    """Enum for all prompt types - maps to prompt keys"""

    # Flow lifecycle
    FLOW_STARTED = "transcript.flow.started"
    FLOW_ENDED = "transcript.flow.ended"
    NO_START_NODE = "transcript.no.start.node"
    NO_START_EDGE = "transcript.no.start.edge"
    NODE_NOT_FOUND = "transcript.node.not.found"
    FLOW_INTERRUPTED = "transcript.flow.interrupted"
    STEP_BUDGET_EXCEEDED = "transcript.step.budget.exceeded"
    UNKNOWN_NODE = "transcript.unknown.node"

    # Messages & questions
    MESSAGE_NOT_CONFIGURED = "transcript.message.not.configured"
    QUESTION_NOT_CONFIGURED = "transcript.question.not.configured"
    MESSAGE_DELAY = "transcript.message.delay"

    # Conditions
    CONDITION_RESULT = "transcript.condition.result"
    CONDITION_TRUE = "transcript.condition.true"
    CONDITION_FALSE = "transcript.condition.false"
    CONDITION_PATH_MISSING = "transcript.condition.path.missing"
    AI_CONDITION_SIMULATED = "transcript.ai.condition.simulated"
    AI_CONDITION_RESULT = "transcript.ai.condition.result"
    AI_CONDITION_NO_MATCH = "transcript.ai.condition.no.match"
    AI_CONDITION_FAILED = "transcript.ai.condition.failed"

    # Actions
    ACTION_ADD_TAG = "transcript.action.add.tag"
    ACTION_REMOVE_TAG = "transcript.action.remove.tag"
    ACTION_SET_VARIABLE = "transcript.action.set.variable"
    ACTION_SET_VARIABLE_SKIPPED = "transcript.action.set.variable.skipped"
    ACTION_TRANSFER = "transcript.action.transfer"
    ACTION_MOVE_FUNNEL = "transcript.action.move.funnel"
    ACTION_NOTIFICATION = "transcript.action.notification"
    ACTION_NOTIFICATION_MESSAGE = "transcript.action.notification.message"
    ACTION_WEBHOOK = "transcript.action.webhook"
    ACTION_UNKNOWN = "transcript.action.unknown"
    ACTION_FAILED = "transcript.action.failed"
    NOT_AVAILABLE = "transcript.not.available"

    # Delay & AI response
    DELAY = "transcript.delay"
    AI_GENERATING = "transcript.ai.generating"
    AI_SIMULATED_RESPONSE = "transcript.ai.simulated.response"
    AI_DEFAULT_PROMPT = "transcript.ai.default.prompt"
    AI_FAILED = "transcript.ai.failed"

    # Model prompts
    INTENT_SYSTEM = "intent.system"
    INTENT_USER = "intent.user"
    INTENT_LINE = "intent.line"
    INTENT_AGENT_CONTEXT = "intent.agent.context"
    GENERATION_DEFAULT_SYSTEM = "generation.default.system"
    GENERATION_AGENT_SYSTEM = "generation.agent.system"


@dataclass
class Prompt:
    """Represents a single prompt template"""
    key: str
    template: str
    category: PromptCategory
    description: str = ""
    variables: List[str] = None

    def __post_init__(self):
        if self.variables is None:
            self.variables = sorted(set(re.findall(r'\{(\w+)\}', self.template)))

    def format(self, **kwargs) -> str:
        """
        Format the prompt with provided variables.

        Raises:
            PromptError: If required variables are missing
        """
        missing = set(self.variables) - set(kwargs.keys())
        if missing:
            raise PromptError(
                f"Missing required variables: {sorted(missing)}",
                prompt_type=self.key,
                details={"missing_variables": sorted(missing)}
            )

        try:
            return self.template.format(**kwargs)
        except (KeyError, IndexError) as e:
            raise PromptError(
                f"Error formatting prompt: {e}",
                prompt_type=self.key,
                details={"error": str(e)}
            ) from e


class PromptManager:
    """
    Loads the prompt modules and hands out formatted texts by key.
    """

    def __init__(self):
        self.prompts: Dict[str, Prompt] = {}
        self._loaded = False

    def get_prompt(self, prompt_type, **kwargs) -> str:
        """
        Args:
            prompt_type: PromptType enum value or string key
            **kwargs: Variables for formatting
        """
        key = prompt_type.value if hasattr(prompt_type, 'value') else str(prompt_type)
        return self.get(key, **kwargs)

    def load_prompts(self):
        if self._loaded:
            logger.debug("Prompts already loaded")
            return

        self._define_prompts()

        self._loaded = True
        logger.info(f"Loaded {len(self.prompts)} prompts")

    def _define_prompts(self):
        """Register every prompt from the prompt modules"""
        from chatflow.prompts import transcript_prompts, intent_prompts, generation_prompts

        # Transcript texts: CONSTANT_NAME -> transcript.constant.name
        for name in dir(transcript_prompts):
            value = getattr(transcript_prompts, name)
            if isinstance(value, str) and name.isupper() and not name.startswith('_'):
                key = f"transcript.{'.'.join(name.lower().split('_'))}"
                self.add_prompt(Prompt(
                    key=key,
                    template=value,
                    category=PromptCategory.TRANSCRIPT,
                    description=f"Auto-imported from {transcript_prompts.__name__}.{name}"
                ))

        self.add_prompt(Prompt(
            key=PromptType.INTENT_SYSTEM.value,
            template=intent_prompts.INTENT_SYSTEM_TEMPLATE,
            category=PromptCategory.INTENT,
            variables=["context"]
        ))

        self.add_prompt(Prompt(
            key=PromptType.INTENT_USER.value,
            template=intent_prompts.INTENT_USER_TEMPLATE,
            category=PromptCategory.INTENT,
            variables=["intents_list", "user_message"]
        ))

        self.add_prompt(Prompt(
            key=PromptType.INTENT_LINE.value,
            template=intent_prompts.INTENT_LINE_TEMPLATE,
            category=PromptCategory.INTENT,
            variables=["index", "intent_id", "label", "description"]
        ))

        self.add_prompt(Prompt(
            key=PromptType.INTENT_AGENT_CONTEXT.value,
            template=intent_prompts.AGENT_CONTEXT_TEMPLATE,
            category=PromptCategory.INTENT,
            variables=["agent_name", "personality"]
        ))

        self.add_prompt(Prompt(
            key=PromptType.GENERATION_DEFAULT_SYSTEM.value,
            template=generation_prompts.DEFAULT_SYSTEM_PROMPT,
            category=PromptCategory.GENERATION,
        ))

        self.add_prompt(Prompt(
            key=PromptType.GENERATION_AGENT_SYSTEM.value,
            template=generation_prompts.AGENT_SYSTEM_TEMPLATE,
            category=PromptCategory.GENERATION,
            variables=["agent_name", "personality"]
        ))

    def add_prompt(self, prompt: Prompt):
        if prompt.key in self.prompts:
            logger.warning(f"Overwriting existing prompt: {prompt.key}")
        self.prompts[prompt.key] = prompt

    def get(self, key: str, **kwargs) -> str:
        """
        Get a formatted prompt by key.

        Raises:
            PromptError: If prompt not found or formatting fails
        """
        if not self._loaded:
            self.load_prompts()

        if key not in self.prompts:
            raise PromptError(
                f"Prompt not found: {key}",
                prompt_type=key,
                details={"available_keys": list(self.prompts.keys())}
            )

        prompt = self.prompts[key]

        if not prompt.variables and not kwargs:
            return prompt.template

        return prompt.format(**kwargs)

    def list_prompts(self, category: Optional[PromptCategory] = None) -> List[str]:
        if not self._loaded:
            self.load_prompts()

        if category:
            return [key for key, prompt in self.prompts.items() if prompt.category == category]

        return list(self.prompts.keys())


_prompt_manager = None


def get_prompt_manager() -> PromptManager:
    """Get the global PromptManager instance"""
    global _prompt_manager
    if _prompt_manager is None:
        _prompt_manager = PromptManager()
        _prompt_manager.load_prompts()
    return _prompt_manager
