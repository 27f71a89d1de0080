from openai import AsyncOpenAI
from ..config import settings

def get_openai_client() -> AsyncOpenAI:
    return AsyncOpenAI(
        base_url=settings.OPENROUTER_BASE_URL,
        api_key=settings.OPENROUTER_API_KEY,
        timeout=settings.LLM_TIMEOUT_SECONDS,
        max_retries=0,
    )

# Singleton instance
async_client = get_openai_client()
