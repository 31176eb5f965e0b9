from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from smartlocal.documents import (
    DesignNode,
    FontName,
    JsonDesignDocument,
    NodeKind,
    Paint,
    TextContent,
    TextRun,
    TextStyle,
)
from smartlocal.retrieval import RESPONSE_TYPE, ImageByteRetriever
from smartlocal.structures import AssetCatalogEntry

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x01" * 24

ICON_STYLE = TextStyle(font=FontName("Material Icons"), font_size=16.0)
BODY_STYLE = TextStyle(
    font=FontName("Inter", "Medium"),
    font_size=14.0,
    fills=(Paint(color=(0.1, 0.1, 0.1)),),
    line_height=20.0,
)


def text_node(node_id: str, *runs: tuple[str, TextStyle], name: str = "Label") -> DesignNode:
    return DesignNode(
        node_id=node_id,
        name=name,
        kind=NodeKind.TEXT,
        width=120,
        height=40,
        text=TextContent(
            runs=[TextRun(text=text, style=style) for text, style in runs],
            style=runs[0][1] if runs else BODY_STYLE,
        ),
    )


def image_node(node_id: str, name: str, *, extra_paints: int = 0) -> DesignNode:
    fills = [Paint(color=(1.0, 1.0, 1.0))]
    fills.extend(Paint(type="IMAGE", image_hash=f"orig-{node_id}-{idx}") for idx in range(1 + extra_paints))
    return DesignNode(node_id=node_id, name=name, kind=NodeKind.RECTANGLE, fills=fills)


def entry(key: str, locale: str, stem: str, *, size: int = 100, extension: str = "png") -> AssetCatalogEntry:
    return AssetCatalogEntry(
        key=key,
        locale=locale,
        rel_path=key,
        stem=stem,
        extension=extension,
        size=size,
    )


@pytest.fixture
def frame() -> DesignNode:
    return DesignNode(
        node_id="1:1",
        name="Home",
        kind=NodeKind.FRAME,
        x=0,
        y=100,
        width=375,
        height=800,
        children=[
            text_node("1:2", ("★ ", ICON_STYLE), ("Welcome back", BODY_STYLE), name="Title"),
            text_node("n1", ("Hello", BODY_STYLE), name="Greeting"),
            image_node("1:4", "Home Hero"),
            DesignNode(
                node_id="1:5",
                name="Footer",
                kind=NodeKind.GROUP,
                children=[text_node("1:6", ("Terms", BODY_STYLE), name="Terms")],
            ),
        ],
    )


@pytest.fixture
def document(frame: DesignNode) -> JsonDesignDocument:
    return JsonDesignDocument([frame], selection_ids=[frame.node_id])


class StubByteSource:
    """Answers byte requests synchronously from an in-memory mapping."""

    def __init__(self, data: Optional[Dict[str, bytes]] = None, *, silent_keys: tuple[str, ...] = ()) -> None:
        self.data = data or {}
        self.silent_keys = set(silent_keys)
        self.requests: List[Dict[str, Any]] = []
        self.reply: Optional[Callable[[Dict[str, Any]], Any]] = None

    def __call__(self, message: Dict[str, Any]) -> None:
        self.requests.append(message)
        key = message["fileKey"]
        if key in self.silent_keys or self.reply is None:
            return
        payload = self.data.get(key)
        response: Dict[str, Any] = {"type": RESPONSE_TYPE, "requestId": message["requestId"]}
        if payload is None:
            response.update(ok=False, error="missing")
        else:
            response.update(ok=True, bytes=payload)
        self.reply(response)


@pytest.fixture
def byte_source() -> Callable[..., tuple[StubByteSource, ImageByteRetriever]]:
    def factory(data=None, *, silent_keys=(), timeout=10.0):
        source = StubByteSource(data, silent_keys=silent_keys)
        retriever = ImageByteRetriever(send=source, timeout=timeout)
        source.reply = retriever.handle_response
        return source, retriever

    return factory
