import logging

from django.conf import settings
from groq import APIConnectionError, APIStatusError, Groq

from apps.content.constants import MAX_TOKENS, MODEL_NAME, TEMPERATURE, USER_PROMPT_PREFIX
from apps.content.exceptions import ConfigurationError, ExtractionError, NetworkError

logger = logging.getLogger(__name__)


class GroqClient:
    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self.api_key = api_key or settings.GROQ_API_KEY
        self.model = model or settings.GROQ_MODEL or MODEL_NAME
        self._client: Groq | None = None

        if not self.api_key:
            logger.warning("Groq API key not found. Please set GROQ_API_KEY in your .env file")

    @property
    def client(self) -> Groq:
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError("Groq API key is not configured. Please set GROQ_API_KEY in your .env file")
            self._client = Groq(api_key=self.api_key)
        return self._client

    def get_questions_from_markdown(self, prompt: str, markdown: str) -> str | None:
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": prompt
                    },
                    {
                        "role": "user",
                        "content": f"{USER_PROMPT_PREFIX}{markdown}"
                    }
                ],
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS
            )
        except APIConnectionError as exc:
            raise NetworkError(f"Could not reach the Groq API: {exc}") from exc
        except APIStatusError as exc:
            raise ExtractionError(f"Groq API returned {exc.status_code}: {exc.message}") from exc

        return completion.choices[0].message.content if completion.choices else None
