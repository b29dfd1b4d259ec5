"""LLM Client for Groq API integration."""
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, TypeVar
from groq import AsyncGroq
from groq import RateLimitError, AuthenticationError, APIError, APITimeoutError
import logging

import pydantic

from config import GROQ_API_KEY
from models.pipeline import TokenSink
from services.errors import ValidationError

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=pydantic.BaseModel)


@dataclass
class LLMResponse:
    """Response from LLM generation."""
    text: str
    tokens_input: int
    tokens_output: int
    latency_ms: int
    model_used: str


@dataclass
class LLMError:
    """Structured error response from LLM operations."""
    code: str
    message: str
    details: Dict[str, Any]


class LLMClientError(Exception):
    """Custom exception for LLM client errors with structured error information."""

    def __init__(self, error: LLMError):
        self.error = error
        super().__init__(error.message)


class LLMClient:
    """Async client for the Groq chat completions API."""

    def __init__(self, api_key: Optional[str] = None):
        """
        Initialize LLM client with Groq API key.

        Args:
            api_key: Groq API key (defaults to GROQ_API_KEY from environment)
        """
        self.api_key = api_key or GROQ_API_KEY
        if not self.api_key:
            raise ValueError("GROQ_API_KEY must be provided or set in environment")

        self.client = AsyncGroq(api_key=self.api_key)
        logger.info("LLMClient initialized successfully")

    async def generate(
        self,
        model: str,
        prompt: str,
        max_tokens: int = 800,
        temperature: float = 0.3,
        on_token: Optional[TokenSink] = None,
    ) -> LLMResponse:
        """
        Generate a completion, optionally streaming tokens to a sink.

        Args:
            model: Model name (llama-3.1-8b-instant or llama-3.3-70b-versatile)
            prompt: Complete prompt with context and query
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            on_token: Receives every generated delta as it arrives

        Returns:
            LLMResponse with the full text, token counts, and latency

        Raises:
            LLMClientError: Structured error with code, message, and details
        """
        start_time = time.time()
        messages = [{"role": "user", "content": prompt}]

        try:
            logger.debug(f"Generating response with model: {model}, streaming={on_token is not None}")

            if on_token is None:
                response = await self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                )
                text = response.choices[0].message.content or ""
                tokens_input = response.usage.prompt_tokens
                tokens_output = response.usage.completion_tokens
            else:
                text, tokens_input, tokens_output = await self._stream(
                    model, messages, max_tokens, temperature, on_token
                )

        except Exception as e:
            raise self._to_client_error(e, model, start_time)

        latency_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Generated response: model={model}, "
            f"input_tokens={tokens_input}, output_tokens={tokens_output}, "
            f"latency={latency_ms}ms"
        )

        return LLMResponse(
            text=text,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            latency_ms=latency_ms,
            model_used=model,
        )

    async def generate_json(
        self,
        model: str,
        prompt: str,
        schema: Type[SchemaT],
        max_tokens: int = 300,
    ) -> SchemaT:
        """
        Run a deterministic JSON-mode call and decode it into ``schema``.

        Raises:
            LLMClientError: The API call itself failed
            ValidationError: The reply is not JSON matching ``schema``
        """
        start_time = time.time()
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                temperature=0,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise self._to_client_error(e, model, start_time)

        raw = response.choices[0].message.content or ""
        try:
            return schema.model_validate_json(raw)
        except pydantic.ValidationError as e:
            logger.error(f"Malformed {schema.__name__} from {model}: {raw[:200]!r}")
            raise ValidationError(
                f"Malformed {schema.__name__} response",
                details={"raw_response": raw, "errors": e.errors(include_url=False)},
            ) from e

    async def _stream(self, model, messages, max_tokens, temperature, on_token: TokenSink):
        stream = await self.client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            stream=True,
        )

        parts = []
        tokens_input = tokens_output = 0
        async for chunk in stream:
            if chunk.choices:
                delta = chunk.choices[0].delta.content
                if delta:
                    parts.append(delta)
                    on_token(delta)

            # Groq reports usage on the final chunk
            x_groq = getattr(chunk, "x_groq", None)
            usage = getattr(x_groq, "usage", None) if x_groq is not None else None
            if usage is not None:
                tokens_input = usage.prompt_tokens
                tokens_output = usage.completion_tokens

        return "".join(parts), tokens_input, tokens_output

    @staticmethod
    def _to_client_error(e: Exception, model: str, start_time: float) -> LLMClientError:
        """Map a Groq SDK exception to a structured LLMClientError."""
        latency_ms = int((time.time() - start_time) * 1000)
        details: Dict[str, Any] = {
            "model": model,
            "latency_ms": latency_ms,
            "original_error": str(e),
        }

        if isinstance(e, RateLimitError):
            details["retry_after"] = 60
            error = LLMError("RATE_LIMIT_ERROR", "Rate limit exceeded. Please try again in a few moments.", details)
        elif isinstance(e, AuthenticationError):
            error = LLMError("AUTHENTICATION_ERROR", "Authentication failed. Please check your API key.", details)
        elif isinstance(e, APITimeoutError):
            error = LLMError("TIMEOUT_ERROR", "Request timed out. Please try again.", details)
        elif isinstance(e, APIError):
            error = LLMError("API_ERROR", f"Groq API error: {str(e)}", details)
        else:
            details["error_type"] = type(e).__name__
            error = LLMError("UNKNOWN_ERROR", f"Unexpected error during generation: {str(e)}", details)

        logger.error(
            f"LLM call failed: code={error.code}, model={model}, latency={latency_ms}ms, error={e}",
            exc_info=True,
            extra={"error_code": error.code, "error_details": error.details},
        )
        return LLMClientError(error)
