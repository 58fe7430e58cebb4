# chatflow/models/session_state.py

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from chatflow.core.exceptions import SessionError
from chatflow.models.flow_graph import FlowGraph
from chatflow.models.flow_models import TranscriptEntry, TranscriptEvent, TranscriptRole


class SessionStatus(str, Enum):
    RUNNING = "running"
    AWAITING_INPUT = "awaiting_input"
    ENDED = "ended"


class EndReason(str, Enum):
    COMPLETED = "completed"
    DEAD_END = "dead_end"
    CONFIGURATION_ERROR = "configuration_error"
    STEP_BUDGET_EXCEEDED = "step_budget_exceeded"


class Running(BaseModel):
    status: Literal["running"] = "running"


class AwaitingInput(BaseModel):
    status: Literal["awaiting_input"] = "awaiting_input"
    pending_variable: Optional[str] = None
    options: List[str] = Field(default_factory=list)


class Ended(BaseModel):
    status: Literal["ended"] = "ended"
    reason: EndReason = EndReason.COMPLETED


SessionPhase = Annotated[Union[Running, AwaitingInput, Ended], Field(discriminator="status")]


class ExecutionSession(BaseModel):
    """
    State of one flow run: its variables, transcript and position in the graph.

    A session owns a snapshot of the graph it runs on and never shares
    ``variables`` or ``transcript`` with another session. The phase is a
    single tagged value, so "ended while waiting for input" cannot exist.
    """
    session_id: str = Field(default_factory=lambda: str(uuid4()))
    flow_id: Optional[str] = None
    graph: FlowGraph = Field(default_factory=FlowGraph, exclude=True)
    variables: Dict[str, str] = Field(default_factory=dict)
    current_node_id: Optional[str] = None
    transcript: List[TranscriptEntry] = Field(default_factory=list)
    phase: SessionPhase = Field(default_factory=Running)
    steps_taken: int = 0
    last_user_message: Optional[str] = None

    @property
    def status(self) -> SessionStatus:
        return SessionStatus(self.phase.status)

    @property
    def is_running(self) -> bool:
        return isinstance(self.phase, Running)

    @property
    def is_awaiting_input(self) -> bool:
        return isinstance(self.phase, AwaitingInput)

    @property
    def is_ended(self) -> bool:
        return isinstance(self.phase, Ended)

    @property
    def pending_variable(self) -> Optional[str]:
        return self.phase.pending_variable if isinstance(self.phase, AwaitingInput) else None

    @property
    def end_reason(self) -> Optional[EndReason]:
        return self.phase.reason if isinstance(self.phase, Ended) else None

    # Transcript is append-only; entries are frozen models
    def add_entry(
        self,
        role: TranscriptRole,
        text: str,
        event: Optional[TranscriptEvent] = None,
        node_id: Optional[str] = None,
        options: Optional[List[str]] = None,
        simulated: bool = False,
    ) -> TranscriptEntry:
        entry = TranscriptEntry(
            role=role,
            text=text,
            event=event,
            node_id=node_id,
            options=options or None,
            simulated=simulated,
        )
        self.transcript.append(entry)
        return entry

    def add_bot(self, text: str, **kwargs) -> TranscriptEntry:
        return self.add_entry(TranscriptRole.BOT, text, **kwargs)

    def add_user(self, text: str, **kwargs) -> TranscriptEntry:
        return self.add_entry(TranscriptRole.USER, text, **kwargs)

    def add_system(self, text: str, event: Optional[TranscriptEvent] = None, **kwargs) -> TranscriptEntry:
        return self.add_entry(TranscriptRole.SYSTEM, text, event=event, **kwargs)

    def await_input(self, pending_variable: Optional[str], options: Optional[List[str]] = None) -> None:
        self.phase = AwaitingInput(pending_variable=pending_variable, options=options or [])

    def resume(self) -> None:
        self.phase = Running()

    def end(self, reason: EndReason = EndReason.COMPLETED) -> None:
        self.phase = Ended(reason=reason)

    def bot_messages(self) -> List[str]:
        return [entry.text for entry in self.transcript if entry.role == TranscriptRole.BOT]

    def events(self) -> List[TranscriptEvent]:
        return [entry.event for entry in self.transcript if entry.event is not None]

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view of the session for drivers."""
        return {
            "session_id": self.session_id,
            "flow_id": self.flow_id,
            "status": self.status.value,
            "current_node_id": self.current_node_id,
            "pending_variable": self.pending_variable,
            "options": list(self.phase.options) if isinstance(self.phase, AwaitingInput) else [],
            "end_reason": self.end_reason.value if self.end_reason else None,
            "variables": dict(self.variables),
            "steps_taken": self.steps_taken,
            "transcript": [entry.model_dump(mode="json") for entry in self.transcript],
        }


class SessionStore:
    """
    In-memory registry of live sessions, keyed by session id.
    """
    def __init__(self):
        self.sessions: Dict[str, ExecutionSession] = {}

    def add(self, session: ExecutionSession) -> ExecutionSession:
        self.sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> ExecutionSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionError(f"Unknown session: {session_id}", session_id=session_id)
        return session

    def discard(self, session_id: str) -> Optional[ExecutionSession]:
        return self.sessions.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self.sessions

    def __len__(self) -> int:
        return len(self.sessions)
