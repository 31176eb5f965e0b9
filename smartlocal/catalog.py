"""Locale asset catalog parsing, folder scanning, and lookup."""

from __future__ import annotations

import logging
import pathlib
import re
from typing import Any, Dict, Iterable, List, Mapping

from .errors import CatalogError
from .structures import AssetCatalogEntry

log = logging.getLogger(__name__)

CATALOG_VERSION = 1
CATALOG_MODE = "folder"
ALLOWED_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "webp"})
DEFAULT_MAX_ASSET_BYTES = 20 * 1024 * 1024
DEFAULT_MAX_CATALOG_ENTRIES = 5000

LOCALE_FOLDER_PATTERN = re.compile(r"^[A-Za-z]{2,3}(?:-[A-Za-z0-9]+)*$")

_REQUIRED_STRING_FIELDS = ("key", "locale", "relPath", "stem", "extension")


def normalise_extension(value: str) -> str:
    return value.strip().lower().lstrip(".")


def language_base(locale: str) -> str:
    """Return the language part of a locale code ("zh-Hant" -> "zh")."""

    return locale.split("-", 1)[0].lower()


def _parse_entry(raw: Any) -> AssetCatalogEntry | None:
    if not isinstance(raw, Mapping):
        return None
    values: Dict[str, str] = {}
    for name in _REQUIRED_STRING_FIELDS:
        value = raw.get(name)
        if not isinstance(value, str) or not value.strip():
            return None
        values[name] = value.strip()
    extension = normalise_extension(values["extension"])
    if extension not in ALLOWED_EXTENSIONS:
        return None
    size = raw.get("size")
    if isinstance(size, bool) or not isinstance(size, (int, float)) or size < 0:
        return None
    return AssetCatalogEntry(
        key=values["key"],
        locale=values["locale"],
        rel_path=values["relPath"],
        stem=values["stem"],
        extension=extension,
        size=int(size),
    )


def parse_catalog(raw: Any) -> List[AssetCatalogEntry]:
    """Validate the wire form of a catalog and return its usable entries.

    Malformed entries and repeated keys are dropped without complaint; only a
    catalog whose envelope is unusable raises.
    """

    if not isinstance(raw, Mapping):
        raise CatalogError("Asset catalog must be a JSON object.")
    if raw.get("version") != CATALOG_VERSION:
        raise CatalogError(
            f"Unsupported asset catalog version {raw.get('version')!r}; expected {CATALOG_VERSION}."
        )
    entries = raw.get("entries")
    if not isinstance(entries, list):
        raise CatalogError("Asset catalog is missing its 'entries' list.")

    parsed: List[AssetCatalogEntry] = []
    seen: set[str] = set()
    dropped = 0
    for item in entries:
        entry = _parse_entry(item)
        if entry is None or entry.key in seen:
            dropped += 1
            continue
        seen.add(entry.key)
        parsed.append(entry)
    if dropped:
        log.debug("Dropped %d invalid or duplicate catalog entries.", dropped)
    return parsed


def catalog_to_dict(entries: Iterable[AssetCatalogEntry]) -> Dict[str, Any]:
    return {
        "version": CATALOG_VERSION,
        "mode": CATALOG_MODE,
        "entries": [entry.to_dict() for entry in entries],
    }


def is_locale_folder_name(name: str) -> bool:
    return bool(LOCALE_FOLDER_PATTERN.match(name))


def scan_asset_folder(root: pathlib.Path) -> List[AssetCatalogEntry]:
    """Build catalog entries from a folder laid out as ``<locale>/<file>``."""

    if not root.is_dir():
        raise CatalogError(f"Asset folder not found: {root}")

    locale_dirs = sorted(
        path for path in root.iterdir() if path.is_dir() and is_locale_folder_name(path.name)
    )
    if not locale_dirs:
        raise CatalogError(
            "Asset folder must contain locale sub-folders such as en-US/ or zh-Hans/."
        )

    entries: List[AssetCatalogEntry] = []
    for locale_dir in locale_dirs:
        for path in sorted(locale_dir.rglob("*")):
            if not path.is_file():
                continue
            extension = normalise_extension(path.suffix)
            if extension not in ALLOWED_EXTENSIONS:
                continue
            rel_path = path.relative_to(root).as_posix()
            entries.append(
                AssetCatalogEntry(
                    key=rel_path,
                    locale=locale_dir.name,
                    rel_path=rel_path,
                    stem=path.stem,
                    extension=extension,
                    size=path.stat().st_size,
                )
            )
    log.info(
        "Scanned %d assets across %d locale folders in %s.",
        len(entries),
        len(locale_dirs),
        root,
    )
    return entries


class LocaleAssetIndex:
    """Buckets eligible catalog entries by locale for candidate lookup."""

    def __init__(
        self,
        entries: Iterable[AssetCatalogEntry],
        *,
        max_asset_bytes: int = DEFAULT_MAX_ASSET_BYTES,
    ) -> None:
        self.by_locale: Dict[str, List[AssetCatalogEntry]] = {}
        self.by_key: Dict[str, AssetCatalogEntry] = {}
        for entry in entries:
            if entry.extension not in ALLOWED_EXTENSIONS:
                continue
            if entry.size > max_asset_bytes:
                log.debug("Excluding oversized asset %s (%d bytes).", entry.key, entry.size)
                continue
            self.by_locale.setdefault(entry.locale, []).append(entry)
            self.by_key[entry.key] = entry

    def __len__(self) -> int:
        return len(self.by_key)

    def candidates_for(self, locale: str) -> List[AssetCatalogEntry]:
        """Return the candidate pool for a locale, widening to its language."""

        exact = self.by_locale.get(locale)
        if exact:
            return list(exact)

        folded = locale.lower()
        for bucket_locale, bucket in self.by_locale.items():
            if bucket_locale.lower() == folded and bucket:
                return list(bucket)

        base = language_base(locale)
        pooled: List[AssetCatalogEntry] = []
        for bucket_locale, bucket in self.by_locale.items():
            if language_base(bucket_locale) == base:
                pooled.extend(bucket)
        if pooled:
            log.debug(
                "No assets filed under %s; using %d from language %s.",
                locale,
                len(pooled),
                base,
            )
        return pooled
