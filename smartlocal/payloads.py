"""Content extraction and the translation payload exchanged with providers."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Sequence

from .documents import DesignNode
from .errors import InputValidationError
from .structures import ImageDescriptor, TextDescriptor, Uniform

log = logging.getLogger(__name__)

LINE_HEIGHT_FACTOR = 1.4
FALLBACK_FONT_SIZE = 12.0

LocaleTranslationMap = Dict[str, Dict[str, str]]


def _estimate_lines(node: DesignNode) -> int:
    font_size = FALLBACK_FONT_SIZE
    if node.text is not None:
        value = node.text.get_attribute("font_size")
        if isinstance(value, Uniform) and value.value:
            font_size = float(value.value)
    return max(1, round(node.height / (font_size * LINE_HEIGHT_FACTOR)))


def extract_text_descriptors(root: DesignNode) -> List[TextDescriptor]:
    descriptors: List[TextDescriptor] = []
    for node in root.walk():
        if not node.is_text or node.text is None:
            continue
        characters = node.text.characters
        descriptors.append(
            TextDescriptor(
                node_id=node.node_id,
                text=characters,
                char_count=len(characters),
                lines=_estimate_lines(node),
                width=round(node.width),
                height=round(node.height),
            )
        )
    return descriptors


def extract_image_descriptors(root: DesignNode) -> List[ImageDescriptor]:
    return [
        ImageDescriptor(node_id=node.node_id, node_name=node.name, paint_index=index)
        for node in root.walk()
        for index, paint in enumerate(node.fills)
        if paint.is_image
    ]


def build_payload(root: DesignNode, languages: Sequence[str]) -> Dict[str, Any]:
    """Describe the root's text for an external translation engine."""

    texts = extract_text_descriptors(root)
    if not texts:
        raise InputValidationError("No text found in the selected frame.")
    return {
        "sourceFrame": root.name,
        "texts": [descriptor.to_payload() for descriptor in texts],
        "targetLanguages": list(languages),
    }


def strip_code_fence(text: str) -> str:
    """Remove leading/trailing markdown code fences if present."""

    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    first_newline = stripped.find("\n")
    if first_newline == -1:
        return stripped
    body = stripped[first_newline + 1:]
    closing_index = body.rfind("```")
    if closing_index != -1:
        body = body[:closing_index]
    return body.strip()


def parse_localizations(raw: Any) -> LocaleTranslationMap:
    """Normalise a translation engine response into a locale translation map."""

    if isinstance(raw, str):
        try:
            raw = json.loads(strip_code_fence(raw))
        except json.JSONDecodeError as exc:
            raise InputValidationError(f"Localizations are not valid JSON: {exc}") from exc

    if isinstance(raw, Mapping) and isinstance(raw.get("localizations"), Mapping):
        raw = raw["localizations"]
    if not isinstance(raw, Mapping):
        raise InputValidationError(
            'Localizations must be an object shaped as {"locale": {"nodeId": "text"}}.'
        )

    result: LocaleTranslationMap = {}
    for locale, entries in raw.items():
        if not isinstance(locale, str) or not locale.strip():
            continue
        texts: Dict[str, str] = {}
        if isinstance(entries, Mapping):
            for node_id, text in entries.items():
                if isinstance(node_id, str) and isinstance(text, str):
                    texts[node_id] = text
        result[locale.strip()] = texts
    return result
