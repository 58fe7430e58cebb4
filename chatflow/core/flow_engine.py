# chatflow/core/flow_engine.py
"""
Flow Engine - explicit interpreter loop over a flow graph.

The engine owns the session status machine:

    running -> running | awaiting_input | ended
    awaiting_input -> (reply stored) -> running
    ended is terminal

Each step dispatches the current node to its FlowHandlers method through a
kind -> handler map, then resolves the next node from the handler's
outcome. ``advance`` loops until the session suspends, ends, or exhausts
its step budget.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional
import inspect
import logging

from chatflow.core.collaborators import FlowCollaborators
from chatflow.core.delay_policy import DelayPolicy
from chatflow.core.exceptions import state_error
from chatflow.core.flow_handlers import FlowHandlers, NodeOutcome
from chatflow.core.prompt_manager import PromptManager, PromptType
from chatflow.models.flow_graph import FlowGraph
from chatflow.models.flow_models import NodeKind, TranscriptEvent
from chatflow.models.session_state import EndReason, ExecutionSession

logger = logging.getLogger(__name__)

NodeHandler = Callable[[ExecutionSession, Any], Awaitable[NodeOutcome]]

DEFAULT_MAX_STEPS = 500


class FlowEngine:
    """
    Interpreter for chatbot flows.

    The engine itself is stateless between calls; everything a run needs
    lives on the ExecutionSession, so one engine can drive many sessions.
    """

    def __init__(
        self,
        handlers: Optional[FlowHandlers] = None,
        collaborators: Optional[FlowCollaborators] = None,
        delay_policy: Optional[DelayPolicy] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        prompt_manager: Optional[PromptManager] = None,
    ):
        """
        Args:
            handlers: Node handlers; built from the other arguments when omitted
            collaborators: Outbound capabilities passed to new handlers
            delay_policy: Wait policy passed to new handlers
            max_steps: Nodes one ``advance`` call may process before the run is stopped
            prompt_manager: Transcript text source
        """
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")

        self.handlers = handlers or FlowHandlers(
            collaborators=collaborators,
            delay_policy=delay_policy,
            prompt_manager=prompt_manager,
        )
        self.prompt_manager = self.handlers.prompt_manager
        self.max_steps = max_steps

        # Quick lookup: {node kind: handler}
        self._dispatch: Dict[str, NodeHandler] = {}
        self._setup_dispatch()

        logger.info(f"FlowEngine initialized (max_steps={max_steps})")

    def _setup_dispatch(self):
        self._dispatch = {
            NodeKind.START.value: self.handlers.handle_start,
            NodeKind.MESSAGE.value: self.handlers.handle_message,
            NodeKind.QUESTION.value: self.handlers.handle_question,
            NodeKind.CONDITION.value: self.handlers.handle_condition,
            NodeKind.ACTION.value: self.handlers.handle_action,
            NodeKind.DELAY.value: self.handlers.handle_delay,
            NodeKind.AI_RESPONSE.value: self.handlers.handle_ai_response,
            NodeKind.END.value: self.handlers.handle_end,
            NodeKind.UNKNOWN.value: self.handlers.handle_unknown,
        }

    @property
    def collaborators(self) -> FlowCollaborators:
        return self.handlers.collaborators

    def with_collaborators(self, collaborators: FlowCollaborators) -> "FlowEngine":
        """New engine with the same policy and budget but other collaborators."""
        return FlowEngine(
            collaborators=collaborators,
            delay_policy=self.handlers.delay_policy,
            max_steps=self.max_steps,
            prompt_manager=self.prompt_manager,
        )

    def _text(self, prompt_type: PromptType, **kwargs) -> str:
        return self.prompt_manager.get_prompt(prompt_type, **kwargs)

    # ===========================================
    # DRIVER ENTRY POINTS
    # ===========================================

    async def start(
        self,
        graph: FlowGraph,
        start_override_node_id: Optional[str] = None,
        flow_id: Optional[str] = None,
    ) -> ExecutionSession:
        """
        Create a session on a snapshot of ``graph`` and run it until the first
        suspension or termination.

        A missing start node (or override target) does not raise: the
        session comes back ended with a system entry explaining why.
        """
        snapshot = graph.model_copy(deep=True)
        session = ExecutionSession(flow_id=flow_id or graph.flow_id, graph=snapshot)

        if start_override_node_id is not None:
            entry = snapshot.find_node(start_override_node_id)
            if entry is None:
                logger.warning(f"Start override {start_override_node_id} not found")
                session.add_system(
                    self._text(PromptType.NODE_NOT_FOUND, node_id=start_override_node_id),
                    event=TranscriptEvent.NODE_NOT_FOUND,
                )
                session.end(EndReason.CONFIGURATION_ERROR)
                return session
        else:
            entry = snapshot.start_node()
            if entry is None:
                logger.warning(f"Flow {session.flow_id or '<unsaved>'} has no start node")
                session.add_system(self._text(PromptType.NO_START_NODE), event=TranscriptEvent.NO_START_NODE)
                session.end(EndReason.CONFIGURATION_ERROR)
                return session

        session.current_node_id = entry.id
        logger.info(f"Session {session.session_id} starting at node {entry.id}")

        return await self.advance(session)

    async def resume(self, session: ExecutionSession, reply: str) -> ExecutionSession:
        """
        Feed a reply to a session waiting on a Question node and continue.

        Raises:
            FlowStateError: If the session is not awaiting input
        """
        if not session.is_awaiting_input:
            raise state_error(
                f"Session is {session.status.value}, not awaiting input",
                status=session.status.value,
                session_id=session.session_id,
            )

        pending_variable = session.pending_variable
        session.add_user(reply, node_id=session.current_node_id)
        if pending_variable:
            # Stored verbatim, no coercion
            session.variables[pending_variable] = reply
        session.last_user_message = reply
        session.resume()

        self._route(
            session,
            session.current_node_id,
            NodeOutcome(missing_text=self._text(PromptType.FLOW_INTERRUPTED)),
        )

        return await self.advance(session)

    async def advance(self, session: ExecutionSession) -> ExecutionSession:
        """
        Process nodes while the session is running.

        Does nothing for sessions that are awaiting input or ended.
        """
        steps = 0
        while session.is_running:
            if steps >= self.max_steps:
                logger.warning(
                    f"Session {session.session_id} exceeded {self.max_steps} steps at node {session.current_node_id}"
                )
                session.add_system(
                    self._text(PromptType.STEP_BUDGET_EXCEEDED, max_steps=self.max_steps),
                    event=TranscriptEvent.STEP_BUDGET_EXCEEDED,
                    node_id=session.current_node_id,
                )
                session.end(EndReason.STEP_BUDGET_EXCEEDED)
                break

            await self.step(session)
            steps += 1

        return session

    # ===========================================
    # CORE LOOP
    # ===========================================

    async def step(self, session: ExecutionSession) -> None:
        """Process the current node once and resolve where to go next."""
        if not session.is_running:
            return

        node = session.graph.find_node(session.current_node_id)
        if node is None:
            session.add_system(
                self._text(PromptType.NODE_NOT_FOUND, node_id=session.current_node_id),
                event=TranscriptEvent.NODE_NOT_FOUND,
            )
            session.end(EndReason.CONFIGURATION_ERROR)
            return

        session.steps_taken += 1
        await self._notify_node_entered(node.id)

        handler = self._dispatch.get(node.kind, self.handlers.handle_unknown)
        outcome = await handler(session, node)

        if outcome.suspend or not session.is_running:
            return

        self._route(session, node.id, outcome)

    def _route(self, session: ExecutionSession, node_id: str, outcome: NodeOutcome) -> None:
        """Move the session along the edge selected by ``outcome.handle``."""
        edge = session.graph.find_edge(node_id, outcome.handle)

        if edge is None:
            if outcome.missing_text:
                session.add_system(outcome.missing_text, event=outcome.missing_event, node_id=node_id)
                session.end(outcome.missing_reason)
            else:
                session.end(EndReason.COMPLETED)
            logger.info(
                f"Session {session.session_id} stopped at {node_id} "
                f"(handle={outcome.handle!r}, reason={session.end_reason.value})"
            )
            return

        target = session.graph.find_node(edge.target)
        if target is None:
            session.add_system(
                self._text(PromptType.NODE_NOT_FOUND, node_id=edge.target),
                event=TranscriptEvent.NODE_NOT_FOUND,
                node_id=node_id,
            )
            session.end(EndReason.CONFIGURATION_ERROR)
            return

        session.current_node_id = target.id

    async def _notify_node_entered(self, node_id: str) -> None:
        hook = self.collaborators.on_node_entered
        if hook is None:
            return

        # Observational only: a failing sink must not affect the run
        try:
            result = hook(node_id)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"on_node_entered hook failed for {node_id}: {e}")

    # ===========================================
    # INTROSPECTION
    # ===========================================

    def validate_dispatch(self) -> List[str]:
        """Report node kinds without a handler"""
        issues = []
        missing = [kind.value for kind in NodeKind if kind.value not in self._dispatch]
        if missing:
            issues.append(f"Node kinds without handler: {missing}")
        return issues

    def get_engine_summary(self) -> Dict[str, Any]:
        """Summary of the engine configuration for debugging/monitoring"""
        collaborators = self.collaborators
        return {
            "max_steps": self.max_steps,
            "node_kinds": sorted(self._dispatch.keys()),
            "delay_policy": {
                "type": type(self.handlers.delay_policy).__name__,
                "max_wait_seconds": self.handlers.delay_policy.max_wait_seconds,
                "scale": self.handlers.delay_policy.scale,
            },
            "collaborators": {
                "tags": collaborators.tags is not None,
                "funnels": collaborators.funnels is not None,
                "handoff": collaborators.handoff is not None,
                "http": collaborators.http is not None,
                "generator": collaborators.generator is not None,
                "intent_classifier": collaborators.intent_classifier is not None,
                "on_node_entered": collaborators.on_node_entered is not None,
            },
        }


def create_flow_engine(
    collaborators: Optional[FlowCollaborators] = None,
    delay_policy: Optional[DelayPolicy] = None,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> FlowEngine:
    """Create a properly initialized flow engine"""
    return FlowEngine(collaborators=collaborators, delay_policy=delay_policy, max_steps=max_steps)
