"""LLM client with Instructor integration for structured judge responses.

Wraps an OpenAI client with Instructor so judge prompts come back as
validated Pydantic models. Adds retry with exponential backoff, per-call
and cumulative token tracking, and optional Langfuse tracing.
"""

import hashlib
import logging
import os
import time
from typing import Optional, Tuple, Type, TypeVar

import instructor
from langfuse import observe
from langfuse.openai import OpenAI as LangfuseOpenAI
from openai import OpenAI
from pydantic import BaseModel

from lesson_judge import constants

T = TypeVar("T", bound=BaseModel)

logger = logging.getLogger(__name__)

# USD per 1M tokens
MODEL_COSTS = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.60, "cached": 0.075},
    "gpt-4o": {"input": 2.5, "output": 10, "cached": 1.25},
    "gpt-4.1-nano": {"input": 0.1, "output": 0.4, "cached": 0.025},
    "gpt-4.1-mini": {"input": 0.4, "output": 1.6, "cached": 0.1},
    "gpt-4.1": {"input": 2, "output": 8, "cached": 0.5},
}


class LLMGenerationError(Exception):
    """Raised when every attempt to get a structured response fails."""


class TokenUsage(BaseModel):
    """Token usage statistics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cached_tokens: int = 0


class LLMClient:
    """Instructor-wrapped OpenAI client for structured judge output.

    One client serves one model; multi-judge voting holds one client per
    judge model.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        enable_langfuse: bool = False,
    ):
        """Initialize LLM client with Instructor.

        Args:
            api_key: OpenAI API key (if None, uses OPENAI_API_KEY env var)
            model: Model name (if None, uses LLM_MODEL, default gpt-4o-mini)
            max_retries: Maximum number of attempts (default: 3)
            base_delay: Base delay for exponential backoff in seconds (default: 1.0)
            max_delay: Maximum delay between retries in seconds (default: 60.0)
            enable_langfuse: Trace completions through Langfuse (requires LANGFUSE_* env vars)
        """
        self.model = model or constants.LLM_MODEL
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.enable_langfuse = enable_langfuse
        self.total_usage = TokenUsage()

        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if enable_langfuse:
            client = LangfuseOpenAI(api_key=api_key)
            logger.info("Langfuse tracing enabled for OpenAI")
        else:
            client = OpenAI(api_key=api_key)

        self.client = instructor.from_openai(client)

        logger.info(f"LLMClient initialized with model={self.model}, max_retries={max_retries}")

    @observe(as_type="generation")
    def generate(
        self,
        prompt: str,
        response_model: Type[T],
        temperature: float = 0.1,
        max_tokens: int = 4096,
        system_prompt: Optional[str] = None,
    ) -> T:
        """Generate a structured response validated against ``response_model``.

        Args:
            prompt: User prompt
            response_model: Pydantic model class for structured output
            temperature: Sampling temperature (default: 0.1)
            max_tokens: Maximum tokens to generate (default: 4096)
            system_prompt: Optional system prompt

        Returns:
            Validated Pydantic model instance

        Raises:
            LLMGenerationError: If all retry attempts fail
        """
        response, _ = self.generate_with_usage(
            prompt,
            response_model,
            temperature=temperature,
            max_tokens=max_tokens,
            system_prompt=system_prompt,
        )
        return response

    def generate_with_usage(
        self,
        prompt: str,
        response_model: Type[T],
        temperature: float = 0.1,
        max_tokens: int = 4096,
        system_prompt: Optional[str] = None,
    ) -> Tuple[T, TokenUsage]:
        """Same as ``generate`` but also returns the usage of the successful call."""
        prompt_hash = self._hash_prompt(prompt)
        logger.info(
            f"Generating structured response: model={self.model}, "
            f"response_model={response_model.__name__}, "
            f"prompt_hash={prompt_hash}, temperature={temperature}"
        )

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        last_exception: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            start_time = time.perf_counter()
            try:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    response_model=response_model,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
                latency_ms = (time.perf_counter() - start_time) * 1000

                usage = self._extract_usage(response)
                self._update_total_usage(usage)
                logger.info(
                    f"LLM response: model={self.model}, prompt_hash={prompt_hash}, "
                    f"attempt={attempt}, latency_ms={latency_ms:.0f}, "
                    f"tokens={usage.total_tokens}, cached={usage.cached_tokens}"
                )
                return response, usage

            except Exception as e:
                last_exception = e
                latency_ms = (time.perf_counter() - start_time) * 1000
                logger.warning(
                    f"Attempt {attempt}/{self.max_retries} failed after {latency_ms:.0f}ms: "
                    f"{str(e)[:200]}"
                )

                if attempt < self.max_retries:
                    delay = self._calculate_backoff_delay(attempt)
                    logger.info(f"Retrying in {delay:.2f} seconds...")
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} attempts failed for prompt_hash={prompt_hash}"
                    )

        raise LLMGenerationError(
            f"Failed to generate structured response after {self.max_retries} attempts. "
            f"Last error: {last_exception}"
        ) from last_exception

    def _extract_usage(self, response: BaseModel) -> TokenUsage:
        """Read token usage from the raw completion Instructor attaches."""
        usage = TokenUsage()
        raw_usage = getattr(getattr(response, "_raw_response", None), "usage", None)
        if raw_usage is None:
            return usage

        usage.prompt_tokens = getattr(raw_usage, "prompt_tokens", 0) or 0
        usage.completion_tokens = getattr(raw_usage, "completion_tokens", 0) or 0
        usage.total_tokens = getattr(raw_usage, "total_tokens", 0) or 0
        details = getattr(raw_usage, "prompt_tokens_details", None)
        if details is not None:
            usage.cached_tokens = getattr(details, "cached_tokens", 0) or 0
        return usage

    def _update_total_usage(self, usage: TokenUsage) -> None:
        self.total_usage.prompt_tokens += usage.prompt_tokens
        self.total_usage.completion_tokens += usage.completion_tokens
        self.total_usage.total_tokens += usage.total_tokens
        self.total_usage.cached_tokens += usage.cached_tokens

    def get_usage_summary(self) -> dict:
        """Cumulative usage with a cost estimate for this client's model.

        Returns:
            Dictionary with token counts and estimated cost in USD
        """
        model_cost = MODEL_COSTS.get(self.model, MODEL_COSTS["gpt-4.1-mini"])
        uncached_prompt = self.total_usage.prompt_tokens - self.total_usage.cached_tokens
        input_cost = (
            uncached_prompt * model_cost["input"]
            + self.total_usage.cached_tokens * model_cost["cached"]
        ) / 1_000_000
        output_cost = self.total_usage.completion_tokens * model_cost["output"] / 1_000_000

        return {
            "model": self.model,
            "prompt_tokens": self.total_usage.prompt_tokens,
            "completion_tokens": self.total_usage.completion_tokens,
            "total_tokens": self.total_usage.total_tokens,
            "cached_tokens": self.total_usage.cached_tokens,
            "estimated_cost_usd": round(input_cost + output_cost, 4),
        }

    def reset_usage(self) -> None:
        self.total_usage = TokenUsage()

    def _hash_prompt(self, prompt: str) -> str:
        """First 16 hex characters of the prompt's SHA256."""
        return hashlib.sha256(prompt.encode()).hexdigest()[:16]

    def _calculate_backoff_delay(self, attempt: int) -> float:
        """Exponential backoff delay for a 1-indexed attempt, capped at max_delay."""
        delay = self.base_delay * (2 ** (attempt - 1))
        return min(delay, self.max_delay)
