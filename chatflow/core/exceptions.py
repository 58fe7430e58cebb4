# chatflow/core/exceptions.py
"""
Chatflow exceptions.

Inside a running flow, configuration problems and collaborator failures are
reported as transcript entries, never raised. The exceptions below cover
what happens around a run: loading a graph, driver misuse and the
collaborator services themselves.
"""

from typing import Optional, Dict, Any


class ChatflowBaseException(Exception):
    """Base exception for all chatflow errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class FlowError(ChatflowBaseException):
    """Errors while executing a flow"""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.node_id = node_id

        if node_id:
            self.details['node_id'] = node_id

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.node_id:
            return f"{base_msg} [Node: {self.node_id}]"
        return base_msg


class FlowStateError(FlowError):
    """The driver asked for something the session's current status does not allow"""

    def __init__(
        self,
        message: str,
        status: Optional[str] = None,
        session_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details=details)
        self.status = status
        self.session_id = session_id

        if status:
            self.details['status'] = status
        if session_id:
            self.details['session_id'] = session_id


class GraphValidationError(ChatflowBaseException):
    """Stored node/edge records that cannot be decoded"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize graph validation error.

        Args:
            message: Error description
            field: Field that failed validation
            value: Invalid value
            details: Additional validation context
        """
        super().__init__(message, details)
        self.field = field
        self.value = value

        if field:
            self.details['field'] = field
        if value is not None:
            self.details['value'] = str(value)[:200]


class ServiceError(ChatflowBaseException):
    """Errors in external service interactions"""

    def __init__(
        self,
        message: str,
        service_name: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.service_name = service_name
        self.operation = operation

        if service_name:
            self.details['service'] = service_name
        if operation:
            self.details['operation'] = operation


class GPTServiceError(ServiceError):
    """Specific errors for GPT service interactions"""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, service_name="GPT", details=details)
        self.model = model

        if model:
            self.details['model'] = model


class HTTPServiceError(ServiceError):
    """Outbound HTTP request failed or returned an error status"""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, service_name="HTTP", operation="perform_request", details=details)
        self.url = url
        self.status_code = status_code

        if url:
            self.details['url'] = url
        if status_code is not None:
            self.details['status_code'] = status_code


class ConfigurationError(ChatflowBaseException):
    """Errors in system configuration and initialization"""

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.component = component

        if component:
            self.details['component'] = component


class PromptError(ChatflowBaseException):
    """Errors in prompt management and template processing"""

    def __init__(
        self,
        message: str,
        prompt_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.prompt_type = prompt_type

        if prompt_type:
            self.details['prompt_type'] = prompt_type


class SessionError(ChatflowBaseException):
    """Unknown or discarded sessions"""

    def __init__(
        self,
        message: str,
        session_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.session_id = session_id

        if session_id:
            self.details['session_id'] = session_id


# Convenience functions for creating common errors

def state_error(message: str, status: str, session_id: Optional[str] = None) -> FlowStateError:
    """Create a state error with session status context."""
    return FlowStateError(message, status=status, session_id=session_id)

