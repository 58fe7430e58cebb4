# chatflow/services/gpt_service.py
"""
GPT Service for chatflow.

Async wrapper around the OpenAI chat completions API, shared by the AI
response and intent classification collaborators. Prompts live in
chatflow.prompts, never here.
"""
from typing import Optional, Dict, Any
from dataclasses import dataclass
import logging
import time

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion

from chatflow.core.config import settings
from chatflow.core.service_base import BaseService, ServiceConfig
from chatflow.core.exceptions import GPTServiceError, ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class GPTConfig(ServiceConfig):
    """Configuration for GPT Service"""
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    max_tokens: Optional[int] = None
    temperature: float = 0.7
    timeout: int = 30
    max_retries: int = 2


class GPTService(BaseService[GPTConfig]):
    """
    Async-only GPT service for text generation.
    """

    def __init__(self, config: Optional[GPTConfig] = None):
        """
        Args:
            config: GPT configuration. Defaults to the application settings.
        """
        if config is None:
            config = GPTConfig(
                api_key=settings.OPENAI_API_KEY,
                model=settings.GPT_MODEL,
                temperature=settings.GPT_TEMPERATURE
            )

        super().__init__(config, logger)

    def _validate_config(self) -> None:
        super()._validate_config()

        if not self.config.api_key:
            raise ConfigurationError(
                "OpenAI API key is required. Set OPENAI_API_KEY environment variable.",
                component="api_key"
            )

        if self.config.temperature < 0 or self.config.temperature > 2:
            raise ConfigurationError(
                "Temperature must be between 0 and 2",
                component="temperature"
            )

    async def _initialize_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=self.config.api_key,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries
        )

    async def _cleanup(self) -> None:
        await self._client.close()

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> str:
        """
        Generate a completion for the given prompt.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt to set context
            temperature: Override default temperature
            max_tokens: Override default max tokens
            **kwargs: Additional OpenAI API parameters

        Returns:
            Generated text completion

        Raises:
            GPTServiceError: If the prompt is empty or generation fails
        """
        await self.ensure_initialized()

        if not prompt or not prompt.strip():
            raise GPTServiceError("Prompt cannot be empty", model=self.config.model)

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        params = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature if temperature is None else temperature,
        }

        if max_tokens or self.config.max_tokens:
            params["max_tokens"] = max_tokens or self.config.max_tokens

        params.update(kwargs)

        try:
            self.logger.debug(f"Generating completion with model {params['model']}")

            response: ChatCompletion = await self.client.chat.completions.create(**params)

            if not response.choices:
                raise GPTServiceError("No completion choices returned from API", model=params["model"])

            content = response.choices[0].message.content

            if not content:
                raise GPTServiceError("Empty completion returned from API", model=params["model"])

            self.logger.debug(f"Generated completion: {len(content)} characters")
            return content.strip()

        except GPTServiceError:
            raise
        except Exception as e:
            error_msg = f"Failed to generate completion: {str(e)}"
            self.logger.error(error_msg, exc_info=True)

            raise GPTServiceError(
                error_msg,
                model=params["model"],
                details={"original_error": str(e), "error_type": type(e).__name__}
            ) from e

    async def health_check(self) -> Dict[str, Any]:
        """
        Check GPT service health with a minimal completion.
        """
        try:
            start_time = time.time()

            await self.complete(
                "Respond with OK",
                temperature=0,
                max_tokens=5
            )

            response_time_ms = int((time.time() - start_time) * 1000)

            return {
                "healthy": True,
                "status": "connected",
                "details": {
                    "model": self.config.model,
                    "response_time_ms": response_time_ms,
                    "api_key_set": bool(self.config.api_key),
                }
            }

        except Exception as e:
            return {
                "healthy": False,
                "status": "error",
                "details": {
                    "error": str(e),
                    "model": self.config.model
                }
            }

    def get_metrics(self) -> Dict[str, Any]:
        metrics = super().get_metrics()
        metrics.update({
            "model": self.config.model,
            "temperature": self.config.temperature,
            "timeout": self.config.timeout
        })
        return metrics


async def create_gpt_service(
    api_key: Optional[str] = None,
    model: str = "gpt-4o-mini",
    **kwargs
) -> GPTService:
    """
    Create and initialize a GPT service instance.

    Raises:
        ConfigurationError: If no API key is available
    """
    config = GPTConfig(
        api_key=api_key or settings.OPENAI_API_KEY,
        model=model,
        **kwargs
    )
    service = GPTService(config)
    await service.initialize()
    return service
