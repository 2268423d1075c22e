from __future__ import annotations

from autodiag.config import settings
from autodiag.llm.client import GenerativeClient
from autodiag.llm.mock_client import MockGenerativeClient


def create_generative_client() -> GenerativeClient:
    """
    Factory for generative API clients.

    Provider SDKs are imported lazily so the app can start in mock mode even if
    google-genai is not installed or no API key is configured.
    """
    provider = (settings.llm_provider or "mock").strip().lower()

    if provider == "mock":
        return MockGenerativeClient()

    if provider == "gemini":
        from autodiag.llm.gemini_client import GeminiClient

        return GeminiClient(api_key=settings.gemini_api_key, default_model=settings.text_model)

    if provider == "openai":
        from autodiag.llm.openai_client import OpenAIChatClient

        return OpenAIChatClient(
            api_key=settings.openai_api_key,
            default_model=settings.text_model,
            base_url=settings.openai_base_url,
            timeout_s=settings.llm_timeout_seconds,
        )

    raise ValueError(f"Unsupported LLM provider: {provider}")
