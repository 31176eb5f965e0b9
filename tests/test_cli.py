import hashlib
import json

import pytest

from conftest import PNG_BYTES
from smartlocal.cli import derive_output_path, execute_apply, main
from smartlocal.configuration import SmartLocalConfig, clear_settings_cache
from smartlocal.documents import JsonDesignDocument


@pytest.fixture
def workspace(monkeypatch, tmp_path, document):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in SmartLocalConfig.model_fields:
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()

    design = tmp_path / "design.json"
    document.save(design)
    assets = tmp_path / "assets" / "fr"
    assets.mkdir(parents=True)
    (assets / "home-hero.png").write_bytes(PNG_BYTES)
    (tmp_path / "fr.json").write_text(json.dumps({"localizations": {"fr": {"n1": "Bonjour"}}}))
    yield tmp_path
    clear_settings_cache()


def _apply(workspace, **overrides):
    options = dict(
        document_file=str(workspace / "design.json"),
        output_file=None,
        localizations_file=str(workspace / "fr.json"),
        locales=None,
        replace_images=False,
        assets_root=None,
        catalog_file=None,
        force_overwrite=False,
        settings=SmartLocalConfig(),
    )
    options.update(overrides)
    return execute_apply(**options)


def test_derive_output_path(tmp_path):
    assert derive_output_path(tmp_path / "home.json") == tmp_path / "home_localized.json"


def test_apply_writes_localized_document(workspace):
    code, result, message = _apply(workspace, replace_images=True, assets_root=str(workspace / "assets"))

    assert code == 0, message
    assert result.frame_count == 1
    assert result.image_replaced_count == 1
    saved = JsonDesignDocument.load(workspace / "design_localized.json")
    clone = next(node for node in saved.nodes if node.name == "Home_fr")
    assert clone.children[1].text.characters == "Bonjour"
    assert clone.children[2].fills[1].image_hash == hashlib.sha1(PNG_BYTES).hexdigest()
    assert saved.images[clone.children[2].fills[1].image_hash] == PNG_BYTES


def test_apply_refuses_to_overwrite(workspace):
    code, result, _ = _apply(workspace, output_file=str(workspace / "design.json"))
    assert code == 1 and result is None

    (workspace / "design_localized.json").write_text("{}")
    code, _, message = _apply(workspace)
    assert code == 1
    assert "--force" in message
    code, _, _ = _apply(workspace, force_overwrite=True)
    assert code == 0


def test_apply_reports_validation_errors(workspace):
    code, result, message = _apply(workspace, localizations_file=None)
    assert code == 1
    assert result is None
    assert message
    assert not (workspace / "design_localized.json").exists()


def test_apply_needs_assets_root_for_images(workspace):
    code, _, message = _apply(workspace, replace_images=True)
    assert code == 1
    assert "--assets-root" in message


def test_catalog_command_prints_entries(workspace, capsys):
    assert main(["catalog", str(workspace / "assets")]) == 0
    catalog = json.loads(capsys.readouterr().out)
    assert catalog["version"] == 1
    assert [item["key"] for item in catalog["entries"]] == ["fr/home-hero.png"]


def test_extract_and_translate_with_echo(workspace):
    payload_path = workspace / "payload.json"
    output_path = workspace / "localized.json"

    assert main(["extract", str(workspace / "design.json"), "-l", "fr", "de", "-o", str(payload_path)]) == 0
    assert main(["translate", str(payload_path), "-p", "echo", "-o", str(output_path)]) == 0

    localizations = json.loads(output_path.read_text())["localizations"]
    assert localizations["de"]["n1"] == "Hello"
    assert set(localizations) == {"fr", "de"}


def test_missing_files_exit_with_error(workspace, capsys):
    assert main(["translate", str(workspace / "missing.json"), "-p", "echo"]) == 1
    assert "File not found" in capsys.readouterr().out


def test_apply_reports_malformed_documents(workspace):
    (workspace / "design.json").write_text('{"selection": ["1"], "nodes": [{"id": "1", "y": "top"}]}')
    code, result, message = _apply(workspace)
    assert code == 1
    assert result is None
    assert "Malformed design document" in message
