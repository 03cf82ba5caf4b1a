import os
import json
import logging
from typing import Optional, Dict, Any

from services.llm_factory import LLMFactory

logger = logging.getLogger(__name__)

LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai").lower()


class LLMGenerationError(Exception):
    """Raised when the LLM fails to generate a response."""
    pass


class LLMJSONParseError(Exception):
    """Raised when the LLM response cannot be parsed as JSON."""
    pass


def _complete(prompt: str, system_prompt: str, model: Optional[str], temperature: float,
              max_tokens: int, json_mode: bool) -> str:
    client = LLMFactory.get_client(LLM_PROVIDER)
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})

    kwargs: Dict[str, Any] = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    response = client.chat.completions.create(
        model=model or LLMFactory.get_default_model(LLM_PROVIDER),
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=30.0,
        **kwargs,
    )
    if not response.choices or not response.choices[0].message.content:
        logger.error("LLM returned empty response or no content")
        raise LLMGenerationError("LLM returned empty response")
    return response.choices[0].message.content


def generate_response(prompt: str, model: Optional[str] = None, temperature: float = 0.2,
                      system_prompt: str = "", max_tokens: int = 1200) -> str:
    """
    Generates a text response from the LLM.
    Raises:
        LLMGenerationError: If the API call fails.
    """
    try:
        return _complete(prompt, system_prompt, model, temperature, max_tokens, json_mode=False)
    except LLMGenerationError:
        raise
    except Exception as e:
        logger.error(f"LLM Generation Failed: {e}", exc_info=True)
        raise LLMGenerationError(f"Failed to generate LLM response: {e}") from e


def generate_json_response(prompt: str, model: Optional[str] = None, temperature: float = 0.1,
                           system_prompt: str = "", max_tokens: int = 900) -> Dict[str, Any]:
    """
    Generates a JSON response. Enforces JSON mode.
    Raises:
        LLMGenerationError: If the API call fails.
        LLMJSONParseError: If the response is not a JSON object.
    """
    try:
        content = _complete(prompt, system_prompt, model, temperature, max_tokens, json_mode=True)
    except LLMGenerationError:
        raise
    except Exception as e:
        logger.error(f"LLM JSON Generation Failed: {e}", exc_info=True)
        raise LLMGenerationError(f"Failed to generate JSON response: {e}") from e

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse LLM JSON response: {e}. Content: {content[:500]}")
        raise LLMJSONParseError(f"Failed to parse JSON from LLM response: {e}") from e

    if not isinstance(parsed, dict):
        raise LLMJSONParseError("LLM JSON response is not an object")
    return parsed
