"""Dominant style resolution for text content replacement."""

from __future__ import annotations

from typing import List, Optional, Sequence

from .documents import STYLE_ATTRIBUTES, DesignNode, FontName
from .structures import Mixed, StyleSegment, Uniform


def dominant_segment(segments: Sequence[StyleSegment]) -> Optional[StyleSegment]:
    """Return the longest segment; the earliest one wins a tie."""

    best: Optional[StyleSegment] = None
    for segment in segments:
        if best is None or segment.length > best.length:
            best = segment
    return best


def required_fonts(node: DesignNode) -> List[FontName]:
    """Fonts that must be loaded before the node's content can change."""

    if node.text is None:
        return []
    font = node.text.get_attribute("font")
    if isinstance(font, Uniform):
        return [font.value]
    return node.text.font_names()


def replace_text(node: DesignNode, translated: str) -> Optional[StyleSegment]:
    """Overwrite a text node's content and restyle it with its dominant style.

    Returns the segment whose style was applied, or None when the node had
    no characters to take a style from.
    """

    if node.text is None:
        raise TypeError(f"Node {node.node_id} is not a text node.")

    dominant = dominant_segment(node.text.style_segments())
    node.text.set_characters(translated)
    if dominant is None:
        return None

    for name in STYLE_ATTRIBUTES:
        value = dominant.attributes.get(name)
        if isinstance(value, Mixed) or value is None:
            continue
        node.text.set_attribute(name, value.value)
    return dominant
