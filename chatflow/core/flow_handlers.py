# chatflow/core/flow_handlers.py
"""
Per-kind node handlers for the FlowEngine.

Each handler appends transcript entries, mutates the session and returns a
NodeOutcome telling the engine how to continue: which output handle to
route through, whether the session suspended, and what to report when no
edge leaves the node for that handle.

Collaborator failures never escape a handler; they become system entries.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

from chatflow.core.collaborators import FlowCollaborators
from chatflow.core.conditions import evaluate_conditions
from chatflow.core.delay_policy import DelayPolicy
from chatflow.core.interpolation import interpolate
from chatflow.core.prompt_manager import PromptManager, PromptType, get_prompt_manager
from chatflow.models.flow_models import (
    NO_INTENT,
    ActionNode,
    ActionType,
    AiResponseMode,
    AiResponseNode,
    ConditionMode,
    ConditionNode,
    DelayNode,
    DelayUnit,
    EndNode,
    HttpRequestAction,
    MessageNode,
    MoveFunnelAction,
    QuestionNode,
    SendNotificationAction,
    SetVariableAction,
    StartNode,
    TagAction,
    TransferAction,
    TranscriptEvent,
    UnknownAction,
    UnknownNode,
)
from chatflow.models.session_state import EndReason, ExecutionSession

logger = logging.getLogger(__name__)

YES_HANDLE = "yes"
NO_HANDLE = "no"

# Simulated AI latency before scaling, 1s with the preview policy
SIMULATED_AI_SECONDS = 10

_UNIT_LABELS = {
    DelayUnit.SECONDS: "s",
    DelayUnit.MINUTES: "min",
    DelayUnit.HOURS: "h",
}


def _format_number(value: float) -> str:
    return f"{value:g}"


@dataclass
class NodeOutcome:
    """
    What the engine does after a handler returns.

    Attributes:
        handle: Output handle to route through, None for unconditional routing
        suspend: Session is waiting for a reply; do not route
        missing_text: System warning emitted when no edge matches. None ends
            the run quietly as completed.
        missing_event: Event code of that warning
        missing_reason: EndReason used when the warning is emitted
    """
    handle: Optional[str] = None
    suspend: bool = False
    missing_text: Optional[str] = None
    missing_event: TranscriptEvent = TranscriptEvent.DEAD_END
    missing_reason: EndReason = EndReason.DEAD_END

    @classmethod
    def suspended(cls) -> "NodeOutcome":
        return cls(suspend=True)


class FlowHandlers:
    """
    Implements the processing contract of every node kind.
    """

    def __init__(
        self,
        collaborators: Optional[FlowCollaborators] = None,
        delay_policy: Optional[DelayPolicy] = None,
        prompt_manager: Optional[PromptManager] = None,
    ):
        """
        Args:
            collaborators: Outbound capabilities; missing ones are simulated
            delay_policy: Bounds every simulated wait
            prompt_manager: Source of all transcript texts
        """
        self.collaborators = collaborators or FlowCollaborators()
        self.delay_policy = delay_policy or DelayPolicy()
        self.prompt_manager = prompt_manager or get_prompt_manager()

        self._action_handlers = {
            ActionType.ADD_TAG.value: self._add_tag,
            ActionType.REMOVE_TAG.value: self._remove_tag,
            ActionType.SET_VARIABLE.value: self._set_variable,
            ActionType.MOVE_FUNNEL.value: self._move_funnel,
            ActionType.TRANSFER.value: self._transfer,
            ActionType.HTTP_REQUEST.value: self._http_request,
            ActionType.SEND_NOTIFICATION.value: self._send_notification,
            ActionType.UNKNOWN.value: self._unknown_action,
        }

    def _text(self, prompt_type: PromptType, **kwargs) -> str:
        return self.prompt_manager.get_prompt(prompt_type, **kwargs)

    # ===========================================
    # ENTRY AND EXIT
    # ===========================================

    async def handle_start(self, session: ExecutionSession, node: StartNode) -> NodeOutcome:
        session.add_system(self._text(PromptType.FLOW_STARTED), event=TranscriptEvent.FLOW_STARTED, node_id=node.id)
        return NodeOutcome(
            missing_text=self._text(PromptType.NO_START_EDGE),
            missing_event=TranscriptEvent.NO_START_EDGE,
            missing_reason=EndReason.CONFIGURATION_ERROR,
        )

    async def handle_end(self, session: ExecutionSession, node: EndNode) -> NodeOutcome:
        session.add_system(self._text(PromptType.FLOW_ENDED), event=TranscriptEvent.FLOW_ENDED, node_id=node.id)
        session.end(EndReason.COMPLETED)
        logger.info(f"Session {session.session_id} reached end node {node.id}")
        return NodeOutcome()

    # ===========================================
    # CONVERSATION
    # ===========================================

    async def handle_message(self, session: ExecutionSession, node: MessageNode) -> NodeOutcome:
        text = interpolate(node.text or self._text(PromptType.MESSAGE_NOT_CONFIGURED), session.variables)
        session.add_bot(text, node_id=node.id)

        if node.delay_seconds > 0:
            session.add_system(
                self._text(PromptType.MESSAGE_DELAY, seconds=_format_number(node.delay_seconds)),
                event=TranscriptEvent.MESSAGE_DELAY,
                node_id=node.id,
            )
            await self.delay_policy.wait(node.delay_seconds)

        # A message without a next node is a normal way to finish a flow
        return NodeOutcome()

    async def handle_question(self, session: ExecutionSession, node: QuestionNode) -> NodeOutcome:
        prompt = interpolate(node.prompt or self._text(PromptType.QUESTION_NOT_CONFIGURED), session.variables)
        session.add_bot(prompt, node_id=node.id, options=list(node.options))
        session.await_input(node.variable_name, node.options)
        return NodeOutcome.suspended()

    # ===========================================
    # BRANCHING
    # ===========================================

    async def handle_condition(self, session: ExecutionSession, node: ConditionNode) -> NodeOutcome:
        if node.mode is ConditionMode.AI_INTENT:
            return await self._handle_intent_condition(session, node)

        result = evaluate_conditions(node.conditions, node.logic_operator, session.variables)
        label = self._text(PromptType.CONDITION_TRUE if result else PromptType.CONDITION_FALSE)
        session.add_system(
            self._text(PromptType.CONDITION_RESULT, result=label),
            event=TranscriptEvent.CONDITION_EVALUATED,
            node_id=node.id,
        )
        logger.debug(f"Condition {node.id} evaluated {result} over {len(node.conditions)} rule(s)")

        return NodeOutcome(
            handle=YES_HANDLE if result else NO_HANDLE,
            missing_text=self._text(PromptType.CONDITION_PATH_MISSING, path="sim" if result else "não"),
        )

    async def _handle_intent_condition(self, session: ExecutionSession, node: ConditionNode) -> NodeOutcome:
        classifier = self.collaborators.intent_classifier

        if classifier is None:
            session.add_system(
                self._text(PromptType.AI_CONDITION_SIMULATED),
                event=TranscriptEvent.AI_SIMULATED,
                node_id=node.id,
                simulated=True,
            )
            handle = YES_HANDLE
        else:
            try:
                intent_id = await classifier.classify_intent(
                    session.last_user_message or "",
                    list(node.intents),
                    agent_ref=node.ai_config_id,
                )
            except Exception as e:
                logger.warning(f"Intent classification failed on node {node.id}: {e}")
                session.add_system(
                    self._text(PromptType.AI_CONDITION_FAILED, error=str(e)),
                    event=TranscriptEvent.AI_FAILED,
                    node_id=node.id,
                )
                intent_id = NO_INTENT

            handle = intent_id if intent_id in node.intent_ids else NO_INTENT
            if handle == NO_INTENT:
                text = self._text(PromptType.AI_CONDITION_NO_MATCH)
            else:
                intent = next(i for i in node.intents if i.id == handle)
                text = self._text(PromptType.AI_CONDITION_RESULT, intent=intent.label or intent.id)
            session.add_system(text, event=TranscriptEvent.INTENT_CLASSIFIED, node_id=node.id)

        return NodeOutcome(
            handle=handle,
            missing_text=self._text(PromptType.CONDITION_PATH_MISSING, path=handle),
        )

    # ===========================================
    # ACTIONS
    # ===========================================

    async def handle_action(self, session: ExecutionSession, node: ActionNode) -> NodeOutcome:
        action = node.action
        handler = self._action_handlers.get(action.action_type, self._unknown_action)

        try:
            text, event = await handler(session, action)
        except Exception as e:
            logger.warning(f"Action {node.action_type} failed on node {node.id}: {e}")
            text = self._text(PromptType.ACTION_FAILED, action_type=node.action_type, error=str(e))
            event = TranscriptEvent.ACTION_FAILED

        session.add_system(text, event=event, node_id=node.id)
        return NodeOutcome()

    def _or_na(self, value: Optional[str]) -> str:
        return value or self._text(PromptType.NOT_AVAILABLE)

    async def _add_tag(self, session: ExecutionSession, action: TagAction):
        tag = interpolate(action.tag_name, session.variables)
        if self.collaborators.tags is not None and tag:
            await self.collaborators.tags.add_tag(tag)
        return self._text(PromptType.ACTION_ADD_TAG, tag=self._or_na(tag)), TranscriptEvent.ACTION_EXECUTED

    async def _remove_tag(self, session: ExecutionSession, action: TagAction):
        tag = interpolate(action.tag_name, session.variables)
        if self.collaborators.tags is not None and tag:
            await self.collaborators.tags.remove_tag(tag)
        return self._text(PromptType.ACTION_REMOVE_TAG, tag=self._or_na(tag)), TranscriptEvent.ACTION_EXECUTED

    async def _set_variable(self, session: ExecutionSession, action: SetVariableAction):
        if not action.variable_name or not action.variable_value:
            return self._text(PromptType.ACTION_SET_VARIABLE_SKIPPED), TranscriptEvent.ACTION_EXECUTED

        value = interpolate(action.variable_value, session.variables)
        session.variables[action.variable_name] = value
        return (
            self._text(PromptType.ACTION_SET_VARIABLE, name=action.variable_name, value=value),
            TranscriptEvent.ACTION_EXECUTED,
        )

    async def _move_funnel(self, session: ExecutionSession, action: MoveFunnelAction):
        if self.collaborators.funnels is not None and action.funnel_id:
            await self.collaborators.funnels.move_stage(action.funnel_id, action.stage_id)
        return (
            self._text(PromptType.ACTION_MOVE_FUNNEL, funnel=self._or_na(action.funnel_id)),
            TranscriptEvent.ACTION_EXECUTED,
        )

    async def _transfer(self, session: ExecutionSession, action: TransferAction):
        if self.collaborators.handoff is not None:
            await self.collaborators.handoff.transfer_to_human(action.mode)
        return self._text(PromptType.ACTION_TRANSFER), TranscriptEvent.ACTION_EXECUTED

    async def _http_request(self, session: ExecutionSession, action: HttpRequestAction):
        url = interpolate(action.url, session.variables)
        if self.collaborators.http is not None and url:
            response = await self.collaborators.http.perform_request(
                url,
                action.method,
                body=self._interpolate_body(action.body, session.variables),
                headers=dict(action.headers) or None,
            )
            logger.info(f"HTTP action {action.method} {url} -> {response.get('status_code')}")
        return self._text(PromptType.ACTION_WEBHOOK, url=self._or_na(url)), TranscriptEvent.ACTION_EXECUTED

    def _interpolate_body(self, body: Any, variables: Dict[str, str]) -> Any:
        if isinstance(body, str):
            return interpolate(body, variables)
        if isinstance(body, dict):
            return {key: self._interpolate_body(value, variables) for key, value in body.items()}
        if isinstance(body, list):
            return [self._interpolate_body(value, variables) for value in body]
        return body

    async def _send_notification(self, session: ExecutionSession, action: SendNotificationAction):
        message = interpolate(action.message, session.variables)
        if message:
            return self._text(PromptType.ACTION_NOTIFICATION_MESSAGE, message=message), TranscriptEvent.ACTION_EXECUTED
        return self._text(PromptType.ACTION_NOTIFICATION), TranscriptEvent.ACTION_EXECUTED

    async def _unknown_action(self, session: ExecutionSession, action: UnknownAction):
        logger.warning(f"Unknown action type: {action.raw_type}")
        return self._text(PromptType.ACTION_UNKNOWN, action_type=action.raw_type), TranscriptEvent.UNKNOWN_ACTION

    # ===========================================
    # WAITS AND GENERATION
    # ===========================================

    async def handle_delay(self, session: ExecutionSession, node: DelayNode) -> NodeOutcome:
        session.add_system(
            self._text(PromptType.DELAY, duration=_format_number(node.duration), unit=_UNIT_LABELS[node.unit]),
            event=TranscriptEvent.DELAY,
            node_id=node.id,
        )
        await self.delay_policy.wait(node.duration_seconds)
        return NodeOutcome()

    async def handle_ai_response(self, session: ExecutionSession, node: AiResponseNode) -> NodeOutcome:
        generator = self.collaborators.generator

        if generator is None:
            session.add_system(
                self._text(PromptType.AI_GENERATING),
                event=TranscriptEvent.AI_SIMULATED,
                node_id=node.id,
                simulated=True,
            )
            await self.delay_policy.wait(SIMULATED_AI_SECONDS)
            prompt = interpolate(node.prompt or self._text(PromptType.AI_DEFAULT_PROMPT), session.variables)
            session.add_bot(
                self._text(PromptType.AI_SIMULATED_RESPONSE, text=prompt),
                node_id=node.id,
                simulated=True,
            )
            return NodeOutcome()

        if node.prompt:
            prompt = interpolate(node.prompt, session.variables)
        else:
            prompt = session.last_user_message or self._text(PromptType.AI_DEFAULT_PROMPT)
        agent_ref = node.agent_ref if node.mode is AiResponseMode.EXISTING else None

        try:
            reply = await generator.generate(prompt, agent_ref=agent_ref, max_tokens=node.max_tokens)
        except Exception as e:
            logger.warning(f"AI response failed on node {node.id}: {e}")
            session.add_system(
                self._text(PromptType.AI_FAILED, error=str(e)),
                event=TranscriptEvent.AI_FAILED,
                node_id=node.id,
            )
            return NodeOutcome()

        session.add_bot(reply, node_id=node.id)
        return NodeOutcome()

    # ===========================================
    # FALLBACK
    # ===========================================

    async def handle_unknown(self, session: ExecutionSession, node: UnknownNode) -> NodeOutcome:
        kind = getattr(node, "type_name", None) or node.kind
        logger.warning(f"Unknown node kind {kind!r} on node {node.id}")
        session.add_system(
            self._text(PromptType.UNKNOWN_NODE, kind=kind),
            event=TranscriptEvent.UNKNOWN_NODE,
            node_id=node.id,
        )
        return NodeOutcome()
