# chatflow/core/orchestrator.py
"""
Flow Runner - driver-facing interface for flow sessions.

Wraps the FlowEngine with a session store so drivers (the preview API, a
test harness) can start runs, feed replies and reset by session id.

Each run gets its own CRM recorder, so CRM changes made by one preview
session never show up in another.
"""

from dataclasses import replace
from typing import Any, Callable, Dict, Optional, Tuple
import logging

from chatflow.core.collaborators import FlowCollaborators
from chatflow.core.config import Settings, settings as default_settings
from chatflow.core.delay_policy import DelayPolicy
from chatflow.core.flow_engine import FlowEngine
from chatflow.core.service_base import BaseService
from chatflow.models.flow_graph import FlowGraph
from chatflow.models.session_state import ExecutionSession, SessionStore
from chatflow.services.ai_response_service import AgentProfile, AIResponseService, build_agent_directory
from chatflow.services.crm_service import InMemoryCRMService
from chatflow.services.gpt_service import GPTConfig, GPTService
from chatflow.services.http_service import HTTPConfig, HTTPService
from chatflow.services.intent_service import IntentClassificationService

logger = logging.getLogger(__name__)


def build_collaborators(
    app_settings: Optional[Settings] = None,
    crm: Optional[InMemoryCRMService] = None,
    agent_profiles: Optional[Dict[str, AgentProfile]] = None
) -> FlowCollaborators:
    """
    Assemble collaborators from settings.

    AI nodes stay simulated unless PREVIEW_SIMULATE_AI is off and an
    OpenAI key is configured; webhooks only fire when PREVIEW_HTTP_ENABLED.
    Generator and classifier share one agent directory, taken from
    ``agent_profiles`` or else from AGENT_PROFILES.

    Without ``crm`` the CRM capabilities stay empty; FlowRunner fills them
    with a recorder per session.
    """
    app_settings = app_settings if app_settings is not None else default_settings

    if crm is not None:
        collaborators = FlowCollaborators(tags=crm, funnels=crm, handoff=crm)
    else:
        collaborators = FlowCollaborators()

    if not app_settings.PREVIEW_SIMULATE_AI and app_settings.OPENAI_API_KEY:
        if agent_profiles is None:
            agent_profiles = build_agent_directory(app_settings.AGENT_PROFILES)
        gpt_service = GPTService(GPTConfig(
            api_key=app_settings.OPENAI_API_KEY,
            model=app_settings.GPT_MODEL,
            temperature=app_settings.GPT_TEMPERATURE
        ))
        collaborators.generator = AIResponseService(gpt_service, agent_profiles=agent_profiles)
        collaborators.intent_classifier = IntentClassificationService(gpt_service, agent_profiles=agent_profiles)
        logger.info(f"AI nodes use {app_settings.GPT_MODEL} with {len(agent_profiles)} agent profile(s)")
    else:
        logger.info("AI nodes are simulated")

    if app_settings.PREVIEW_HTTP_ENABLED:
        collaborators.http = HTTPService(HTTPConfig(timeout=app_settings.HTTP_TIMEOUT))
        logger.info("HTTP actions are enabled")

    return collaborators


class FlowRunner:
    """
    Main interface for driving flow sessions.

    This runner:
    1. Starts sessions on a snapshot of the submitted graph
    2. Feeds replies and option picks to waiting sessions
    3. Keeps live sessions in a SessionStore, each with its own CRM recorder
    """

    def __init__(
        self,
        session_store: Optional[SessionStore] = None,
        flow_engine: Optional[FlowEngine] = None,
        crm_factory: Optional[Callable[[], InMemoryCRMService]] = InMemoryCRMService
    ):
        """
        Args:
            session_store: Registry of live sessions
            flow_engine: Interpreter; built lazily from settings when omitted
            crm_factory: Builds the recorder of each new session; None keeps
                the engine's own CRM collaborators for every run
        """
        self.session_store = session_store if session_store is not None else SessionStore()
        self.flow_engine = flow_engine
        self.crm_factory = crm_factory

        # {session_id: engine bound to that session's recorder}
        self._session_engines: Dict[str, FlowEngine] = {}
        self._recorders: Dict[str, InMemoryCRMService] = {}

        if flow_engine is None:
            logger.info("FlowRunner created (engine will be lazy-loaded)")

    def _ensure_engine(self) -> FlowEngine:
        if self.flow_engine is None:
            logger.info("Building flow engine from settings...")
            self.flow_engine = FlowEngine(
                collaborators=build_collaborators(default_settings),
                delay_policy=DelayPolicy.from_settings(default_settings),
                max_steps=default_settings.MAX_STEPS
            )
        return self.flow_engine

    def _engine_for_new_run(self) -> Tuple[FlowEngine, Optional[InMemoryCRMService]]:
        engine = self._ensure_engine()
        if self.crm_factory is None:
            return engine, None

        crm = self.crm_factory()
        collaborators = replace(engine.collaborators, tags=crm, funnels=crm, handoff=crm)
        return engine.with_collaborators(collaborators), crm

    def _engine_for(self, session: ExecutionSession) -> FlowEngine:
        engine = self._session_engines.get(session.session_id)
        if engine is None:
            engine = self._ensure_engine()
        return engine

    def _forget(self, session_id: str) -> None:
        self._session_engines.pop(session_id, None)
        self._recorders.pop(session_id, None)

    # ===========================================
    # DRIVER OPERATIONS
    # ===========================================

    async def start_run(
        self,
        graph: FlowGraph,
        start_override_node_id: Optional[str] = None
    ) -> ExecutionSession:
        """Start a fresh session and run it to its first suspension or end."""
        engine, crm = self._engine_for_new_run()
        session = await engine.start(graph, start_override_node_id=start_override_node_id)
        self.session_store.add(session)
        if crm is not None:
            self._session_engines[session.session_id] = engine
            self._recorders[session.session_id] = crm

        logger.info(
            f"Run {session.session_id} for flow {session.flow_id or '<unsaved>'}: "
            f"{session.status.value} after {session.steps_taken} step(s)"
        )
        return session

    async def submit_reply(self, session: ExecutionSession, text: str) -> ExecutionSession:
        """
        Raises:
            FlowStateError: If the session is not awaiting input
        """
        await self._engine_for(session).resume(session, text)

        logger.info(f"Run {session.session_id} after reply: {session.status.value}")
        return session

    async def submit_option(self, session: ExecutionSession, option_text: str) -> ExecutionSession:
        """
        Same as ``submit_reply``; the option's text becomes the reply.

        Raises:
            FlowStateError: If the session is not awaiting input
        """
        options = session.phase.options if session.is_awaiting_input else []
        if options and option_text not in options:
            logger.debug(f"Option {option_text!r} is not one of {options}, treating it as free text")
        return await self.submit_reply(session, option_text)

    async def reset(
        self,
        graph: FlowGraph,
        session: Optional[ExecutionSession] = None
    ) -> ExecutionSession:
        """Discard ``session`` (if any) and start over on ``graph``."""
        if session is not None:
            self.session_store.discard(session.session_id)
            self._forget(session.session_id)
            logger.info(f"Discarded run {session.session_id}")
        return await self.start_run(graph)

    # ===========================================
    # SESSION ACCESS
    # ===========================================

    def get_session(self, session_id: str) -> ExecutionSession:
        """
        Raises:
            SessionError: If the session is unknown
        """
        return self.session_store.get(session_id)

    def discard_session(self, session_id: str) -> bool:
        self._forget(session_id)
        return self.session_store.discard(session_id) is not None

    def get_recorder(self, session_id: str) -> Optional[InMemoryCRMService]:
        """CRM recorder of a live session, or None when the run uses the engine's own."""
        return self._recorders.get(session_id)

    def session_view(self, session: ExecutionSession) -> Dict[str, Any]:
        """Session snapshot plus the CRM state its run has recorded."""
        view = session.snapshot()
        recorder = self._recorders.get(session.session_id)
        view["crm"] = recorder.snapshot() if recorder is not None else None
        return view

    def get_session_info(self, session_id: str) -> Dict[str, Any]:
        session = self.session_store.get(session_id)
        recorder = self._recorders.get(session_id)
        return {
            "session_id": session.session_id,
            "flow_id": session.flow_id,
            "status": session.status.value,
            "current_node_id": session.current_node_id,
            "transcript_length": len(session.transcript),
            "variables": dict(session.variables),
            "crm": recorder.snapshot() if recorder is not None else None,
        }

    async def health_check(self) -> Dict[str, Any]:
        health_status = {
            "runner": "healthy",
            "flow_engine": "not_initialized",
            "session_count": len(self.session_store),
            "crm_recorders": len(self._recorders),
            "overall": "healthy"
        }

        if self.flow_engine is not None:
            issues = self.flow_engine.validate_dispatch()
            health_status["flow_engine"] = f"issues: {len(issues)}" if issues else "healthy"
            if issues:
                health_status["overall"] = "warning"
            health_status["summary"] = self.flow_engine.get_engine_summary()

        return health_status

    async def shutdown(self) -> None:
        """Close the clients of the collaborator services."""
        if self.flow_engine is None:
            return

        collaborators = self.flow_engine.collaborators
        candidates = [
            collaborators.http,
            getattr(collaborators.generator, "gpt_service", None),
            getattr(collaborators.intent_classifier, "gpt_service", None),
        ]
        closed = set()
        for service in candidates:
            if isinstance(service, BaseService) and id(service) not in closed:
                closed.add(id(service))
                await service.shutdown()


# Global runner instance for easy access
_runner: Optional[FlowRunner] = None


def get_runner(session_store: Optional[SessionStore] = None) -> FlowRunner:
    """Get the global FlowRunner instance."""
    global _runner

    if _runner is None:
        logger.info("Creating new FlowRunner instance")
        _runner = FlowRunner(session_store=session_store)

    return _runner


def init_runner(
    session_store: Optional[SessionStore] = None,
    flow_engine: Optional[FlowEngine] = None
) -> FlowRunner:
    """Replace the global FlowRunner instance."""
    global _runner
    _runner = FlowRunner(session_store=session_store, flow_engine=flow_engine)
    return _runner
