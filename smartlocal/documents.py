"""Design document model and the JSON-backed host implementation."""

from __future__ import annotations

import base64
import binascii
import copy
import hashlib
import json
import logging
import pathlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import DocumentFormatError, FontUnavailableError, ImageDecodeError
from .structures import MIXED, AttributeValue, StyleSegment, Uniform

log = logging.getLogger(__name__)

DOCUMENT_VERSION = 1

STYLE_ATTRIBUTES: Tuple[str, ...] = (
    "font",
    "font_size",
    "fills",
    "line_height",
    "letter_spacing",
    "text_decoration",
    "text_case",
)

IMAGE_SIGNATURES: Tuple[bytes, ...] = (
    b"\x89PNG\r\n\x1a\n",
    b"\xff\xd8\xff",
)


class NodeKind(str, Enum):
    FRAME = "FRAME"
    COMPONENT = "COMPONENT"
    INSTANCE = "INSTANCE"
    GROUP = "GROUP"
    TEXT = "TEXT"
    RECTANGLE = "RECTANGLE"
    ELLIPSE = "ELLIPSE"
    VECTOR = "VECTOR"
    OTHER = "OTHER"


ROOT_KINDS = frozenset({NodeKind.FRAME, NodeKind.COMPONENT, NodeKind.INSTANCE})


@dataclass(frozen=True)
class FontName:
    family: str
    style: str = "Regular"


@dataclass(frozen=True)
class Paint:
    """One fill layer. Image paints reference pixels by ``image_hash``."""

    type: str = "SOLID"
    color: Optional[Tuple[float, float, float]] = None
    opacity: float = 1.0
    visible: bool = True
    image_hash: Optional[str] = None
    scale_mode: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.type == "IMAGE"


@dataclass(frozen=True)
class TextStyle:
    font: FontName = FontName("Inter")
    font_size: float = 12.0
    fills: Tuple[Paint, ...] = ()
    line_height: Optional[float] = None
    letter_spacing: float = 0.0
    text_decoration: str = "NONE"
    text_case: str = "ORIGINAL"


@dataclass
class TextRun:
    text: str
    style: TextStyle


@dataclass
class TextContent:
    """Characters of a text node split into styled runs.

    ``style`` is the style new characters take when the node is empty.
    """

    runs: List[TextRun] = field(default_factory=list)
    style: TextStyle = field(default_factory=TextStyle)

    @property
    def characters(self) -> str:
        return "".join(run.text for run in self.runs)

    def set_characters(self, text: str) -> None:
        """Replace the content; everything takes the first run's style."""

        style = self.runs[0].style if self.runs else self.style
        self.style = style
        self.runs = [TextRun(text=text, style=style)] if text else []

    def style_segments(self) -> List[StyleSegment]:
        segments: List[StyleSegment] = []
        cursor = 0
        previous: Optional[TextStyle] = None
        for run in self.runs:
            if not run.text:
                continue
            end = cursor + len(run.text)
            if segments and run.style == previous:
                segments[-1].end = end
            else:
                segments.append(
                    StyleSegment(
                        start=cursor,
                        end=end,
                        attributes={
                            name: Uniform(getattr(run.style, name)) for name in STYLE_ATTRIBUTES
                        },
                    )
                )
            previous = run.style
            cursor = end
        return segments

    def get_attribute(self, name: str) -> AttributeValue:
        styles = [run.style for run in self.runs if run.text] or [self.style]
        values = {getattr(style, name) for style in styles}
        if len(values) == 1:
            return Uniform(values.pop())
        return MIXED

    def set_attribute(self, name: str, value: Any) -> None:
        if name not in STYLE_ATTRIBUTES:
            raise AttributeError(f"Unknown text attribute {name!r}.")
        self.style = replace(self.style, **{name: value})
        for run in self.runs:
            run.style = replace(run.style, **{name: value})

    def font_names(self) -> List[FontName]:
        fonts: List[FontName] = []
        for style in [run.style for run in self.runs] or [self.style]:
            if style.font not in fonts:
                fonts.append(style.font)
        return fonts


@dataclass
class DesignNode:
    node_id: str
    name: str
    kind: NodeKind = NodeKind.FRAME
    visible: bool = True
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    fills: List[Paint] = field(default_factory=list)
    children: List["DesignNode"] = field(default_factory=list)
    text: Optional[TextContent] = None

    @property
    def is_text(self) -> bool:
        return self.kind is NodeKind.TEXT

    def walk(self) -> Iterator["DesignNode"]:
        """Yield this node and its descendants depth-first, pre-order."""

        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


class DesignHost(ABC):
    """The boundary to the design tool the engine mutates."""

    @property
    @abstractmethod
    def selection(self) -> Sequence[DesignNode]:
        """Nodes currently selected by the user."""

    @abstractmethod
    def clone(self, node: DesignNode) -> DesignNode:
        """Deep-copy a subtree with fresh identities next to the original."""

    @abstractmethod
    async def load_font(self, font: FontName) -> None:
        """Make a font usable for text edits."""

    @abstractmethod
    def create_image(self, data: bytes) -> str:
        """Register image bytes and return their content handle."""


# --- JSON serialisation -----------------------------------------------------


def _paint_from_json(raw: Dict[str, Any]) -> Paint:
    color = raw.get("color")
    return Paint(
        type=str(raw.get("type", "SOLID")),
        color=tuple(color) if isinstance(color, list) else None,  # type: ignore[arg-type]
        opacity=float(raw.get("opacity", 1.0)),
        visible=bool(raw.get("visible", True)),
        image_hash=raw.get("imageHash"),
        scale_mode=raw.get("scaleMode"),
    )


def _paint_to_json(paint: Paint) -> Dict[str, Any]:
    data: Dict[str, Any] = {"type": paint.type}
    if paint.color is not None:
        data["color"] = list(paint.color)
    if paint.opacity != 1.0:
        data["opacity"] = paint.opacity
    if not paint.visible:
        data["visible"] = False
    if paint.image_hash is not None:
        data["imageHash"] = paint.image_hash
    if paint.scale_mode is not None:
        data["scaleMode"] = paint.scale_mode
    return data


def _style_from_json(raw: Dict[str, Any] | None) -> TextStyle:
    raw = raw or {}
    font = raw.get("font") or {}
    return TextStyle(
        font=FontName(family=font.get("family", "Inter"), style=font.get("style", "Regular")),
        font_size=float(raw.get("fontSize", 12.0)),
        fills=tuple(_paint_from_json(item) for item in raw.get("fills", [])),
        line_height=raw.get("lineHeight"),
        letter_spacing=float(raw.get("letterSpacing", 0.0)),
        text_decoration=str(raw.get("textDecoration", "NONE")),
        text_case=str(raw.get("textCase", "ORIGINAL")),
    )


def _style_to_json(style: TextStyle) -> Dict[str, Any]:
    return {
        "font": {"family": style.font.family, "style": style.font.style},
        "fontSize": style.font_size,
        "fills": [_paint_to_json(paint) for paint in style.fills],
        "lineHeight": style.line_height,
        "letterSpacing": style.letter_spacing,
        "textDecoration": style.text_decoration,
        "textCase": style.text_case,
    }


def node_from_json(raw: Any) -> DesignNode:
    if not isinstance(raw, dict) or not isinstance(raw.get("id"), str):
        raise DocumentFormatError("Every node needs a string 'id'.")
    try:
        kind = NodeKind(str(raw.get("type", "OTHER")).upper())
    except ValueError:
        kind = NodeKind.OTHER
    node = DesignNode(
        node_id=raw["id"],
        name=str(raw.get("name", "")),
        kind=kind,
        visible=bool(raw.get("visible", True)),
        x=float(raw.get("x", 0.0)),
        y=float(raw.get("y", 0.0)),
        width=float(raw.get("width", 0.0)),
        height=float(raw.get("height", 0.0)),
        fills=[_paint_from_json(item) for item in raw.get("fills", [])],
        children=[node_from_json(child) for child in raw.get("children", [])],
    )
    if kind is NodeKind.TEXT:
        base = _style_from_json(raw.get("style"))
        runs = [
            TextRun(text=str(item.get("text", "")), style=_style_from_json(item.get("style")))
            for item in raw.get("runs", [])
        ]
        if not runs and raw.get("characters"):
            runs = [TextRun(text=str(raw["characters"]), style=base)]
        node.text = TextContent(runs=runs, style=base)
    return node


def node_to_json(node: DesignNode) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": node.node_id,
        "name": node.name,
        "type": node.kind.value,
        "x": node.x,
        "y": node.y,
        "width": node.width,
        "height": node.height,
    }
    if not node.visible:
        data["visible"] = False
    if node.fills:
        data["fills"] = [_paint_to_json(paint) for paint in node.fills]
    if node.text is not None:
        data["style"] = _style_to_json(node.text.style)
        data["runs"] = [
            {"text": run.text, "style": _style_to_json(run.style)} for run in node.text.runs
        ]
    if node.children:
        data["children"] = [node_to_json(child) for child in node.children]
    return data


class JsonDesignDocument(DesignHost):
    """An in-memory design document persisted as JSON."""

    def __init__(
        self,
        nodes: Iterable[DesignNode],
        *,
        selection_ids: Sequence[str] = (),
        fonts: Optional[Iterable[FontName]] = None,
        images: Optional[Dict[str, bytes]] = None,
    ) -> None:
        self.nodes: List[DesignNode] = list(nodes)
        self.selection_ids: List[str] = list(selection_ids)
        self.available_fonts = set(fonts) if fonts is not None else None
        self.loaded_fonts: set[FontName] = set()
        self.images: Dict[str, bytes] = dict(images or {})
        self._clone_batch = 1 + max(
            (self._id_prefix(node.node_id) for root in self.nodes for node in root.walk()),
            default=0,
        )

    @staticmethod
    def _id_prefix(node_id: str) -> int:
        head = node_id.split(":", 1)[0]
        return int(head) if head.isdigit() else 0

    @classmethod
    def from_dict(cls, raw: Any) -> "JsonDesignDocument":
        if not isinstance(raw, dict):
            raise DocumentFormatError("Design document must be a JSON object.")
        if raw.get("version", DOCUMENT_VERSION) != DOCUMENT_VERSION:
            raise DocumentFormatError(
                f"Unsupported design document version {raw.get('version')!r}."
            )
        images: Dict[str, bytes] = {}
        for handle, encoded in (raw.get("images") or {}).items():
            try:
                images[handle] = base64.b64decode(encoded, validate=True)
            except (binascii.Error, ValueError, TypeError) as exc:
                raise DocumentFormatError(f"Image {handle} is not valid base64.") from exc
        fonts_raw = raw.get("fonts")
        try:
            fonts = (
                [FontName(item["family"], item.get("style", "Regular")) for item in fonts_raw]
                if isinstance(fonts_raw, list)
                else None
            )
            nodes = [node_from_json(item) for item in raw.get("nodes", [])]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise DocumentFormatError(f"Malformed design document: {exc!r}") from exc
        return cls(
            nodes,
            selection_ids=[str(item) for item in raw.get("selection", [])],
            fonts=fonts,
            images=images,
        )

    @classmethod
    def load(cls, path: pathlib.Path) -> "JsonDesignDocument":
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise DocumentFormatError(f"{path} is not valid JSON: {exc}") from exc
        return cls.from_dict(raw)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "version": DOCUMENT_VERSION,
            "selection": list(self.selection_ids),
            "images": {
                handle: base64.b64encode(data).decode("ascii")
                for handle, data in self.images.items()
            },
            "nodes": [node_to_json(node) for node in self.nodes],
        }
        if self.available_fonts is not None:
            data["fonts"] = [
                {"family": font.family, "style": font.style}
                for font in sorted(self.available_fonts, key=lambda f: (f.family, f.style))
            ]
        return data

    def save(self, destination: pathlib.Path) -> None:
        destination.write_text(
            json.dumps(self.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

    # --- DesignHost -------------------------------------------------------

    def find(self, node_id: str) -> Optional[DesignNode]:
        for root in self.nodes:
            for node in root.walk():
                if node.node_id == node_id:
                    return node
        return None

    @property
    def selection(self) -> List[DesignNode]:
        found = [self.find(node_id) for node_id in self.selection_ids]
        return [node for node in found if node is not None]

    def clone(self, node: DesignNode) -> DesignNode:
        duplicate = copy.deepcopy(node)
        batch = self._clone_batch
        self._clone_batch += 1
        for index, item in enumerate(duplicate.walk()):
            item.node_id = f"{batch}:{index}"

        self._containing_list(node).append(duplicate)
        return duplicate

    def _containing_list(self, node: DesignNode) -> List[DesignNode]:
        if any(item is node for item in self.nodes):
            return self.nodes
        for root in self.nodes:
            for candidate in root.walk():
                if any(child is node for child in candidate.children):
                    return candidate.children
        raise DocumentFormatError(f"Node {node.node_id} is not part of this document.")

    async def load_font(self, font: FontName) -> None:
        if self.available_fonts is not None and font not in self.available_fonts:
            raise FontUnavailableError(f"Font {font.family} {font.style} is not installed.")
        self.loaded_fonts.add(font)

    def create_image(self, data: bytes) -> str:
        if not data or not self._looks_like_image(data):
            raise ImageDecodeError("Image data is not a PNG, JPEG, or WebP file.")
        handle = hashlib.sha1(data).hexdigest()
        self.images.setdefault(handle, data)
        return handle

    @staticmethod
    def _looks_like_image(data: bytes) -> bool:
        if any(data.startswith(signature) for signature in IMAGE_SIGNATURES):
            return True
        return data[:4] == b"RIFF" and data[8:12] == b"WEBP"
