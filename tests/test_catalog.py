import pytest

from conftest import entry
from smartlocal.catalog import (
    LocaleAssetIndex,
    catalog_to_dict,
    language_base,
    parse_catalog,
    scan_asset_folder,
)
from smartlocal.errors import CatalogError


def _raw(key, **overrides):
    item = {
        "key": key,
        "locale": "fr",
        "relPath": f"fr/{key}.png",
        "stem": key,
        "extension": "png",
        "size": 10,
    }
    item.update(overrides)
    return item


def test_parse_catalog_drops_invalid_entries():
    catalog = {
        "version": 1,
        "mode": "folder",
        "entries": [
            _raw("hero"),
            _raw("hero", stem="duplicate"),
            _raw("no-stem", stem=""),
            _raw("gif", extension="gif"),
            _raw("negative", size=-1),
            _raw("flag", size=True),
            _raw("upper", extension=".PNG"),
            "not an object",
        ],
    }
    entries = parse_catalog(catalog)
    assert [item.key for item in entries] == ["hero", "upper"]
    assert entries[0].stem == "hero"
    assert entries[1].extension == "png"


@pytest.mark.parametrize(
    "raw",
    [
        [],
        {"version": 2, "entries": []},
        {"version": 1},
        {"version": 1, "entries": {}},
    ],
)
def test_parse_catalog_rejects_bad_envelopes(raw):
    with pytest.raises(CatalogError):
        parse_catalog(raw)


def test_catalog_to_dict_uses_wire_names():
    data = catalog_to_dict([entry("fr/hero.png", "fr", "hero")])
    assert data["version"] == 1
    assert data["mode"] == "folder"
    assert data["entries"][0]["relPath"] == "fr/hero.png"


def test_language_base():
    assert language_base("zh-Hant") == "zh"
    assert language_base("es") == "es"


def test_index_excludes_oversized_assets():
    index = LocaleAssetIndex(
        [entry("fr/a.png", "fr", "a", size=50), entry("fr/b.png", "fr", "b", size=500)],
        max_asset_bytes=100,
    )
    assert [item.key for item in index.candidates_for("fr")] == ["fr/a.png"]
    assert len(index) == 1


def test_index_exact_then_case_insensitive_lookup():
    index = LocaleAssetIndex(
        [entry("es-MX/a.png", "es-MX", "a"), entry("es/b.png", "es", "b")]
    )
    assert [item.key for item in index.candidates_for("es-MX")] == ["es-MX/a.png"]
    assert [item.key for item in index.candidates_for("ES-mx")] == ["es-MX/a.png"]


def test_index_falls_back_to_language_base():
    index = LocaleAssetIndex(
        [
            entry("es/a.png", "es", "a"),
            entry("es/b.png", "es", "b"),
            entry("fr/c.png", "fr", "c"),
        ]
    )
    assert [item.key for item in index.candidates_for("es-MX")] == ["es/a.png", "es/b.png"]


def test_index_unions_sibling_locales_for_fallback():
    index = LocaleAssetIndex(
        [entry("zh/a.png", "zh", "a"), entry("zh-Hans/b.png", "zh-Hans", "b")]
    )
    assert {item.key for item in index.candidates_for("zh-Hant")} == {"zh/a.png", "zh-Hans/b.png"}
    assert index.candidates_for("de") == []


def test_scan_asset_folder(tmp_path):
    (tmp_path / "fr" / "nested").mkdir(parents=True)
    (tmp_path / "zh-Hans").mkdir()
    (tmp_path / "assets").mkdir()
    (tmp_path / "fr" / "Home Hero.PNG").write_bytes(b"x" * 7)
    (tmp_path / "fr" / "nested" / "banner.jpg").write_bytes(b"y" * 3)
    (tmp_path / "fr" / "notes.txt").write_text("skip")
    (tmp_path / "zh-Hans" / "hero.webp").write_bytes(b"z")
    (tmp_path / "assets" / "ignored.png").write_bytes(b"z")

    entries = scan_asset_folder(tmp_path)

    by_key = {item.key: item for item in entries}
    assert set(by_key) == {"fr/Home Hero.PNG", "fr/nested/banner.jpg", "zh-Hans/hero.webp"}
    hero = by_key["fr/Home Hero.PNG"]
    assert hero.locale == "fr"
    assert hero.stem == "Home Hero"
    assert hero.extension == "png"
    assert hero.size == 7
    assert by_key["fr/nested/banner.jpg"].locale == "fr"


def test_scan_asset_folder_requires_locale_folders(tmp_path):
    (tmp_path / "images").mkdir()
    with pytest.raises(CatalogError):
        scan_asset_folder(tmp_path)
    with pytest.raises(CatalogError):
        scan_asset_folder(tmp_path / "missing")
