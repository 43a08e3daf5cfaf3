"""
LLM gateway over the OpenAI chat completions API.

Turns a prompt into raw model text. Every transport failure leaves this
module as an LLMTransportError carrying the upstream status code when one
exists.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    OpenAI,
    OpenAIError,
)

from ..core.errors import LLMTransportError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_OUTPUT_TOKENS = 8192


@dataclass(frozen=True)
class ConnectionCheck:
    """Result of a round-trip test against the model endpoint."""
    success: bool
    message: str
    response: Optional[str] = None
    error: Optional[str] = None


class OpenAIGateway:
    """Single text-in/text-out call against one configured model.

    Retries are disabled: retry policy belongs to the caller.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = DEFAULT_MAX_OUTPUT_TOKENS,
        api_key: Optional[str] = None,
    ):
        """Initialize the gateway.

        Args:
            model: Model identifier (required)
            timeout: Seconds before a call is abandoned
            temperature: Sampling temperature (optional)
            max_tokens: Maximum tokens to generate (optional)
            api_key: API key; falls back to OPENAI_API_KEY

        Raises:
            LLMTransportError: If no model is configured or the client
                cannot be created (e.g. missing credentials)
        """
        if not model or not model.strip():
            raise LLMTransportError("No model configured for the LLM gateway")
        if timeout <= 0:
            raise ValueError("timeout must be > 0")

        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        try:
            self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        except OpenAIError as e:
            raise LLMTransportError(f"LLM endpoint is not usable: {e}") from e

    def generate(self, prompt: str) -> str:
        """Send prompt to the model and return its raw text.

        Raises:
            LLMTransportError: On network, auth, quota, timeout or service
                failure, or when the response carries no text
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except APITimeoutError as e:
            raise LLMTransportError(
                f"Model call timed out after {self.timeout:g}s", status_code=504
            ) from e
        except APIConnectionError as e:
            raise LLMTransportError(f"Could not reach model endpoint: {e}", status_code=502) from e
        except APIStatusError as e:
            raise LLMTransportError(
                f"Model endpoint returned an error: {e.message}", status_code=e.status_code
            ) from e
        except OpenAIError as e:
            raise LLMTransportError(f"Model call failed: {e}") from e

        choices = getattr(response, "choices", None)
        if not choices:
            raise LLMTransportError("Model returned no choices", status_code=502)
        text = choices[0].message.content
        if not text or not text.strip():
            raise LLMTransportError("Model returned an empty response", status_code=502)

        logger.debug("Model %s returned %d characters", self.model, len(text))
        return text

    def check_connection(self) -> ConnectionCheck:
        """Send a trivial prompt to confirm the endpoint answers."""
        try:
            text = self.generate("Hello, this is a test message.")
        except LLMTransportError as e:
            logger.error("Model connection test failed: %s", e)
            return ConnectionCheck(
                success=False,
                message="Failed to connect to model endpoint",
                error=str(e)
            )
        return ConnectionCheck(
            success=True,
            message=f"Successfully connected to {self.model}",
            response=text
        )
