# chatflow/services/http_service.py
"""
HTTP egress for http_request / webhook actions.

One shared httpx.AsyncClient per service; every request carries the
configured timeout. Error statuses raise, the interpreter turns them into
action_failed transcript entries.
"""
from typing import Any, Dict, Optional
from dataclasses import dataclass
import logging

import httpx

from chatflow.core.config import settings
from chatflow.core.service_base import BaseService, ServiceConfig
from chatflow.core.exceptions import ConfigurationError, HTTPServiceError

logger = logging.getLogger(__name__)

# Bodies longer than this are truncated in results and logs
MAX_RESPONSE_CHARS = 1000

_METHODS_WITHOUT_BODY = {"GET", "DELETE", "HEAD", "OPTIONS"}


@dataclass
class HTTPConfig(ServiceConfig):
    """Configuration for HTTP Service"""
    timeout: float = 30.0
    user_agent: str = "chatflow/0.1"
    transport: Optional[httpx.AsyncBaseTransport] = None


class HTTPService(BaseService[HTTPConfig]):
    """
    Async HTTP client service.
    """

    def __init__(self, config: Optional[HTTPConfig] = None):
        if config is None:
            config = HTTPConfig(timeout=settings.HTTP_TIMEOUT)

        super().__init__(config, logger)

    def _validate_config(self) -> None:
        super()._validate_config()

        if self.config.timeout <= 0:
            raise ConfigurationError("HTTP timeout must be positive", component="timeout")

    async def _initialize_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.timeout,
            headers={"User-Agent": self.config.user_agent},
            transport=self.config.transport
        )

    async def _cleanup(self) -> None:
        await self._client.aclose()

    async def perform_request(
        self,
        url: str,
        method: str = "POST",
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Send one request.

        Returns:
            ``{"status_code": int, "response": str}`` with the body truncated

        Raises:
            HTTPServiceError: On transport errors or a 4xx/5xx status
        """
        await self.ensure_initialized()

        method = (method or "POST").upper()
        request_kwargs: Dict[str, Any] = {"headers": headers or None}
        if body is not None and method not in _METHODS_WITHOUT_BODY:
            if isinstance(body, (dict, list)):
                request_kwargs["json"] = body
            else:
                request_kwargs["content"] = str(body)

        try:
            self.logger.debug(f"{method} {url}")
            response = await self.client.request(method, url, **request_kwargs)
        except httpx.HTTPError as e:
            self.logger.warning(f"{method} {url} failed: {e}")
            raise HTTPServiceError(
                f"Request failed: {e}",
                url=url,
                details={"error_type": type(e).__name__}
            ) from e

        text = response.text[:MAX_RESPONSE_CHARS]

        if response.status_code >= 400:
            raise HTTPServiceError(
                f"HTTP {response.status_code} from {url}",
                url=url,
                status_code=response.status_code,
                details={"response": text}
            )

        return {"status_code": response.status_code, "response": text}

    async def health_check(self) -> Dict[str, Any]:
        """The service has no upstream of its own; healthy once its client exists."""
        try:
            await self.ensure_initialized()
            return {
                "healthy": True,
                "status": "ready",
                "details": {"timeout": self.config.timeout}
            }
        except Exception as e:
            return {
                "healthy": False,
                "status": "error",
                "details": {"error": str(e)}
            }

    def get_metrics(self) -> Dict[str, Any]:
        metrics = super().get_metrics()
        metrics["timeout"] = self.config.timeout
        return metrics
