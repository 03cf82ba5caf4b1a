#File: services/llm_factory.py
import os
import logging
from typing import Dict, Any, Union
from openai import OpenAI, AzureOpenAI

logger = logging.getLogger(__name__)


class LLMProvider:
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    GROQ = "groq"
    AZURE = "azure"
    LOCAL = "local"


class LLMFactory:
    """
    Creates and caches OpenAI-compatible clients per provider configuration.
    """

    _instances: Dict[Any, Union[OpenAI, AzureOpenAI]] = {}

    @staticmethod
    def get_client(provider: str = LLMProvider.OPENAI, **kwargs) -> Union[OpenAI, AzureOpenAI]:
        api_key = kwargs.get("api_key")
        base_url = kwargs.get("base_url")
        api_version = kwargs.get("api_version")
        azure_endpoint = kwargs.get("azure_endpoint")
        timeout = kwargs.get("timeout", 45.0)
        max_retries = kwargs.get("max_retries", 2)

        if provider == LLMProvider.OPENROUTER:
            api_key = api_key or os.getenv("OPENROUTER_API_KEY")
            base_url = base_url or "https://openrouter.ai/api/v1"
            if not api_key:
                raise ValueError("OPENROUTER_API_KEY not set")

        elif provider == LLMProvider.GROQ:
            api_key = api_key or os.getenv("GROQ_API_KEY")
            base_url = base_url or "https://api.groq.com/openai/v1"
            if not api_key:
                raise ValueError("GROQ_API_KEY not set")

        elif provider == LLMProvider.OPENAI:
            api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY not set")

        elif provider == LLMProvider.LOCAL:
            base_url = base_url or os.getenv("LOCAL_LLM_URL", "http://localhost:11434/v1")
            api_key = "ollama"  # Ollama ignores the key

        elif provider == LLMProvider.AZURE:
            api_key = api_key or os.getenv("AZURE_OPENAI_API_KEY")
            azure_endpoint = azure_endpoint or os.getenv("AZURE_OPENAI_ENDPOINT")
            api_version = api_version or os.getenv("AZURE_OPENAI_API_VERSION", "2023-05-15")
            if not api_key or not azure_endpoint:
                raise ValueError("AZURE_OPENAI_API_KEY and AZURE_OPENAI_ENDPOINT must be set")

        else:
            raise ValueError(f"Unknown LLM provider: {provider}")

        cache_key = (
            provider,
            api_key or "",
            base_url or "",
            azure_endpoint or "",
            api_version or "",
            float(timeout),
            int(max_retries),
        )
        if cache_key in LLMFactory._instances:
            return LLMFactory._instances[cache_key]

        logger.info(f"Initializing LLM client for provider: {provider}")
        if provider == LLMProvider.AZURE:
            client = AzureOpenAI(
                api_key=api_key,
                azure_endpoint=azure_endpoint,
                api_version=api_version,
                timeout=timeout,
                max_retries=max_retries,
            )
        else:
            client = OpenAI(
                api_key=api_key,
                base_url=base_url,
                timeout=timeout,
                max_retries=max_retries,
            )

        LLMFactory._instances[cache_key] = client
        return client

    @staticmethod
    def get_default_model(provider: str) -> str:
        override = os.getenv("LLM_MODEL")
        if override:
            return override
        if provider == LLMProvider.OPENROUTER:
            return os.getenv("OPENROUTER_MODEL", "meta-llama/llama-3.1-70b-instruct")
        if provider == LLMProvider.GROQ:
            return os.getenv("GROQ_MODEL", "llama-3.1-70b-versatile")
        if provider == LLMProvider.LOCAL:
            return os.getenv("LOCAL_MODEL", "llama3")
        return os.getenv("OPENAI_MODEL", "gpt-4o-mini")
