from smartlocal.correspondence import build_correspondence


def test_every_original_node_maps_once(document, frame):
    clone = document.clone(frame)

    correspondence = build_correspondence(frame, clone)

    original_nodes = list(frame.walk())
    assert set(correspondence.all_nodes) == {node.node_id for node in original_nodes}
    assert correspondence.all_nodes[frame.node_id] is clone
    text_ids = {node.node_id for node in original_nodes if node.is_text}
    assert set(correspondence.text_nodes) == text_ids
    for node_id, target in correspondence.text_nodes.items():
        assert correspondence.all_nodes[node_id] is target
        assert target.is_text


def test_children_pair_by_position(document, frame):
    clone = document.clone(frame)
    correspondence = build_correspondence(frame, clone)

    assert correspondence.all_nodes["1:6"] is clone.children[3].children[0]
    assert correspondence.all_nodes["1:6"].text.characters == "Terms"


def test_structural_drift_is_not_realigned(document, frame):
    clone = document.clone(frame)
    footer = clone.children.pop()

    correspondence = build_correspondence(frame, clone)

    assert "1:5" not in correspondence.all_nodes
    assert "1:6" not in correspondence.text_nodes
    assert footer not in correspondence.all_nodes.values()


def test_kind_mismatch_keeps_node_out_of_text_map(document, frame):
    clone = document.clone(frame)
    clone.children[0], clone.children[2] = clone.children[2], clone.children[0]

    correspondence = build_correspondence(frame, clone)

    assert "1:2" in correspondence.all_nodes
    assert "1:2" not in correspondence.text_nodes
