"""
LLM Service
二级翻译服务 - 把一个已完成的语音分段翻译成目标语言
"""

from __future__ import annotations

import time

from loguru import logger
from openai import AsyncOpenAI, OpenAIError

from gateway.core.config import Settings, settings as default_settings
from gateway.core.exceptions import MissingConfigError, TranslationError
from gateway.core.logging import log_external_call

SYSTEM_PROMPT = """You are a translator.
Translate the user input verbatim into {target_language}.

<rules>
1. Output ONLY the translation, nothing else.
2. Do NOT skip, merge, or summarize any content.
3. Do NOT add explanations, quotes or notes.
</rules>"""


class TranslationService:
    """Chat-completions client used for segment translation"""

    provider = "openai"

    def __init__(self, config: Settings | None = None):
        config = config or default_settings
        self.api_key = config.OPENAI_API_KEY
        self.base_url = config.TRANSLATION_BASE_URL
        self.model = config.TRANSLATION_MODEL
        self.temperature = config.TRANSLATION_TEMPERATURE

        if self.api_key:
            self.client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        else:
            self.client = None

    async def translate(self, text: str, target_language: str) -> str:
        """Translate one finished segment, returning only the translated text"""
        if not self.client:
            raise MissingConfigError("OPENAI_API_KEY")

        started = time.monotonic()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": SYSTEM_PROMPT.format(target_language=target_language),
                    },
                    {"role": "user", "content": text},
                ],
                temperature=self.temperature,
            )
        except OpenAIError as e:
            log_external_call(
                "translation", self.provider, _elapsed_ms(started), success=False, error=str(e)
            )
            raise TranslationError(str(e), provider=self.provider) from e

        translated = _extract_content(response)
        if not translated:
            log_external_call(
                "translation",
                self.provider,
                _elapsed_ms(started),
                success=False,
                error="empty completion",
            )
            raise TranslationError("Malformed completion payload", provider=self.provider)

        log_external_call("translation", self.provider, _elapsed_ms(started), success=True)
        logger.debug(f"Translated into {target_language}: {translated[:80]}")
        return translated


def _extract_content(response) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    if not isinstance(content, str):
        return ""
    return content.strip()


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000


def get_translation_service() -> TranslationService:
    """FastAPI dependency"""
    return TranslationService()
