"""Gemini chat model used as the generation transport."""
import logging
from langchain_google_genai import ChatGoogleGenerativeAI

from rajai_builder.config import Settings

logger = logging.getLogger(__name__)


def get_llm(settings: Settings) -> ChatGoogleGenerativeAI:
    """
    Initialize and return the Google Gemini chat model.

    Raises:
        ConfigurationError: if no API key is configured. Nothing touches the
            network before this check.
    """
    api_key = settings.require_credential()

    logger.info("→ Initializing ChatGoogleGenerativeAI with API key...")
    logger.info(f"  Model: {settings.model}")
    logger.info(f"  Temperature: {settings.temperature}")

    llm = ChatGoogleGenerativeAI(
        model=settings.model,
        temperature=settings.temperature,
        api_key=api_key,
    )

    logger.info("✓ LLM initialized successfully with API key")
    return llm
