"""Translation provider abstractions."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping

from .errors import InputValidationError, ProviderConfigurationError, ProviderError
from .payloads import LocaleTranslationMap, parse_localizations, strip_code_fence

log = logging.getLogger(__name__)


class LocalizationProvider(ABC):
    """Abstract adapter for the external translation engine."""

    @abstractmethod
    def localize(
        self,
        payload: Mapping[str, Any],
        *,
        model: str | None = None,
    ) -> LocaleTranslationMap:
        """Translate every payload text into every target language."""


class EchoLocalizationProvider(LocalizationProvider):
    """A provider that returns the original text (useful for testing)."""

    def localize(
        self,
        payload: Mapping[str, Any],
        *,
        model: str | None = None,
    ) -> LocaleTranslationMap:
        texts = {item["id"]: item["text"] for item in payload.get("texts", [])}
        return {locale: dict(texts) for locale in payload.get("targetLanguages", [])}


class OpenAILocalizationProvider(LocalizationProvider):
    """Localization provider that uses OpenAI models through the Responses API."""

    DEFAULT_MODEL = "gpt-5-mini"

    SYSTEM_PROMPT = (
        "You are a professional UI localizer. Return only JSON. "
        "Translate every text of the design frame into each target language. "
        "Keep translations close to the source length (see charCount and lines) "
        "and preserve placeholders, numbers, and punctuation style. "
        "Respond strictly with an object shaped as "
        '{"localizations": {"<locale>": {"<id>": "<translated text>"}}} '
        "using the ids and locale codes exactly as given. "
        "Do not add commentary. Do not wrap the JSON in markdown code fences."
    )

    def __init__(self, *, api_key: str | None, debug: bool = False) -> None:
        self.debug = debug
        if not api_key:
            raise ProviderConfigurationError(
                "OpenAI configuration missing. Set OPENAI_API_KEY or choose a "
                "different provider."
            )
        try:
            from openai import OpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise ProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc
        self._client = OpenAI(api_key=api_key)

    def localize(
        self,
        payload: Mapping[str, Any],
        *,
        model: str | None = None,
    ) -> LocaleTranslationMap:
        if not payload.get("texts"):
            return {}

        self._log_debug("provider.request.payload", dict(payload))
        try:
            response = self._client.responses.create(
                model=model or self.DEFAULT_MODEL,
                input=[
                    {
                        "role": "system",
                        "content": [{"type": "input_text", "text": self.SYSTEM_PROMPT}],
                    },
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "input_text",
                                "text": json.dumps(dict(payload), ensure_ascii=False),
                            }
                        ],
                    },
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise ProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc

        output_text = getattr(response, "output_text", None)
        if hasattr(output_text, "value"):
            output_text = output_text.value
        if not output_text:
            raise ProviderError("Translation provider response empty or unrecognised.")
        self._log_debug("provider.response.text", output_text)

        try:
            localizations = parse_localizations(strip_code_fence(str(output_text)))
        except InputValidationError as exc:
            raise ProviderError(f"Translation provider response malformed: {exc}") from exc
        self._log_debug("provider.response.mapping", localizations)
        return localizations

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not self.debug:
            return
        if isinstance(payload, (dict, list)):
            message = json.dumps(payload, ensure_ascii=False, indent=2)
        else:
            message = str(payload)
        log.debug("%s:\n%s", label, message)


def build_provider(
    name: str | None,
    *,
    api_key: str | None = None,
    debug: bool = False,
) -> LocalizationProvider:
    """Factory to create providers by name."""

    normalized = (name or "openai").strip().lower()
    if normalized in {"openai", "gpt", "default"}:
        return OpenAILocalizationProvider(api_key=api_key, debug=debug)
    if normalized in {"echo", "noop", "mock"}:
        return EchoLocalizationProvider()
    raise ProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )


def summarise_localizations(localizations: LocaleTranslationMap) -> Dict[str, int]:
    return {locale: len(entries) for locale, entries in localizations.items()}
