"""Pydantic AI agent that writes short elemental motivational messages."""

import logging
import re

from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.openrouter import OpenRouterModel
from pydantic_ai.providers.openrouter import OpenRouterProvider

from getchida.core.config import settings
from getchida.core.errors import ErrorCategory, ErrorCode, classify_agent_error
from getchida.core.logging import span
from getchida.models.service_models import MotivationalMessage, MotivationRequest, MotivationResult


logger = logging.getLogger(__name__)

# Special tokens some models leak into their output
_SPECIAL_TOKEN_PATTERN = re.compile(
    r"<\|(?:endoftext|im_start|im_end|pad|eos|bos|assistant|user|system)\|>",
    re.IGNORECASE,
)

_CATEGORY_CODES = {
    ErrorCategory.SERVICE_QUOTA_EXCEEDED: ErrorCode.ERR_SERVICE_QUOTA_EXCEEDED,
    ErrorCategory.RATE_LIMIT_EXCEEDED: ErrorCode.ERR_RATE_LIMIT_EXCEEDED,
    ErrorCategory.AUTHENTICATION_FAILED: ErrorCode.ERR_AUTHENTICATION_FAILED,
    ErrorCategory.NETWORK_ERROR: ErrorCode.ERR_NETWORK_ERROR,
    ErrorCategory.UNKNOWN: ErrorCode.ERR_UNKNOWN,
}

INSTRUCTIONS = """You are a motivational bot that provides encouragement to users based on their \
elemental affinity and progress.

Generate a motivational message tailored to the user's element and progress. \
The message should be no more than 2 sentences.

Example messages:
- Air (25%): "The winds of change are with you. Keep soaring towards your goals!"
- Water (50%): "Like water, adapt and flow. You're halfway there, keep going!"
- Earth (75%): "Stay grounded and keep building. You're almost at the finish line!"
- Fire (100%): "Your inner fire burns bright! You've achieved your goal!"
"""


class _AgentState:
    """Singleton state for agent instance."""

    instance: Agent[None, MotivationalMessage] | None = None


def build_agent(model: Model | str) -> Agent[None, MotivationalMessage]:
    """Create a motivation agent on the given model.

    Retries are disabled; a failed run is reported to the caller once.
    """
    return Agent(
        model=model,
        output_type=MotivationalMessage,
        instructions=INSTRUCTIONS,
        retries=0,
    )


def _create_agent() -> Agent[None, MotivationalMessage]:
    api_key = settings.require_credential("openrouter_api_key", "OpenRouter API key")
    provider = OpenRouterProvider(api_key=api_key)
    model = OpenRouterModel(model_name=settings.model_id, provider=provider)
    return build_agent(model)


def get_agent() -> Agent[None, MotivationalMessage]:
    """Get or create the agent instance (lazy initialization)."""
    if _AgentState.instance is None:
        _AgentState.instance = _create_agent()
    return _AgentState.instance


def build_prompt(request: MotivationRequest) -> str:
    """Render the per-request prompt."""
    return f"Element: {request.element.value}\nProgress: {request.progress_percentage:g}%"


def _sanitize_llm_output(text: str) -> str:
    sanitized = _SPECIAL_TOKEN_PATTERN.sub("", text)
    sanitized = re.sub(r"\s{2,}", " ", sanitized)
    return sanitized.strip()


async def generate_motivational_message(request: MotivationRequest) -> MotivationResult:
    """Generate a motivational message for an element and progress percentage.

    Args:
        request: Element and progress toward the chi goal

    Returns:
        MotivationResult with the message, or a classified, user-friendly error
    """
    with span("motivation_agent.generate", element=request.element.value):
        try:
            agent = get_agent()
            logger.info("motivation_agent_run", extra={"element": request.element.value})
            result = await agent.run(build_prompt(request))
            message = _sanitize_llm_output(result.output.message)
            if not message:
                msg = "Model returned an empty message"
                raise ValueError(msg)
        except Exception as e:
            error_category, user_message = classify_agent_error(e)
            logger.error(
                "Motivation agent failed",
                extra={"error": str(e), "error_category": error_category.value},
            )
            return MotivationResult(success=False, error=user_message, code=_CATEGORY_CODES[error_category])

        return MotivationResult(success=True, message=message)
