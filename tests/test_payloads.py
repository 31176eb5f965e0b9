import pytest

from conftest import BODY_STYLE, image_node, text_node
from smartlocal.documents import DesignNode, NodeKind
from smartlocal.errors import InputValidationError
from smartlocal.payloads import (
    build_payload,
    extract_image_descriptors,
    extract_text_descriptors,
    parse_localizations,
)


def test_text_descriptors_in_document_order(frame):
    descriptors = extract_text_descriptors(frame)
    assert [item.node_id for item in descriptors] == ["1:2", "n1", "1:6"]
    greeting = descriptors[1]
    assert greeting.text == "Hello"
    assert greeting.char_count == 5
    # 40 / (14 * 1.4) ~= 2.04
    assert greeting.lines == 2
    # mixed font sizes fall back to 12pt: 40 / 16.8 ~= 2.38
    assert descriptors[0].lines == 2


def test_single_line_minimum():
    node = text_node("t", ("Hi", BODY_STYLE))
    node.height = 2
    assert extract_text_descriptors(node)[0].lines == 1


def test_image_descriptors_cover_every_image_paint():
    root = DesignNode(
        node_id="r",
        name="Root",
        kind=NodeKind.FRAME,
        children=[image_node("a", "Hero", extra_paints=1), image_node("b", "Badge")],
    )
    descriptors = extract_image_descriptors(root)
    assert [(item.node_id, item.paint_index) for item in descriptors] == [("a", 1), ("a", 2), ("b", 1)]
    assert descriptors[0].node_name == "Hero"


def test_build_payload(frame):
    payload = build_payload(frame, ["fr", "es-MX"])
    assert payload["sourceFrame"] == "Home"
    assert payload["targetLanguages"] == ["fr", "es-MX"]
    assert payload["texts"][1] == {
        "id": "n1",
        "text": "Hello",
        "charCount": 5,
        "lines": 2,
        "width": 120,
        "height": 40,
    }


def test_build_payload_requires_text():
    root = DesignNode(node_id="r", name="Empty", kind=NodeKind.FRAME, children=[image_node("a", "Hero")])
    with pytest.raises(InputValidationError):
        build_payload(root, ["fr"])


def test_parse_localizations_accepts_wrapped_and_fenced_json():
    raw = '```json\n{"localizations": {"fr": {"n1": "Bonjour", "n2": 3}, " es ": {}}}\n```'
    assert parse_localizations(raw) == {"fr": {"n1": "Bonjour"}, "es": {}}


def test_parse_localizations_accepts_bare_mapping():
    assert parse_localizations({"de": {"n1": "Hallo"}}) == {"de": {"n1": "Hallo"}}


@pytest.mark.parametrize("raw", ["[1, 2]", "{not json", ["fr"]])
def test_parse_localizations_rejects_non_mappings(raw):
    with pytest.raises(InputValidationError):
        parse_localizations(raw)
