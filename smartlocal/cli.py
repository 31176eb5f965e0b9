"""Command line interface for SmartLocal."""

from __future__ import annotations

import argparse
import asyncio
import json
import pathlib
import sys
from typing import Any, Iterable, List, Optional

from .catalog import catalog_to_dict, parse_catalog, scan_asset_folder
from .configuration import SmartLocalConfig, get_settings
from .documents import JsonDesignDocument
from .errors import ConfigurationError, SmartLocalError
from .localizer import LocalizationRunner, validate_selection
from .logging_config import setup_logging
from .payloads import build_payload, parse_localizations
from .providers import build_provider, summarise_localizations
from .retrieval import connect_folder_source
from .structures import ApplyResult


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smartlocal",
        description=(
            "Localize design frames: export text for translation, then clone the "
            "frame per locale with translated text and locale-specific images."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--log-file",
        help="Also write a detailed log to this file.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    extract = commands.add_parser("extract", help="Write the translation payload for the selected frame.")
    extract.add_argument("document", help="Path to the JSON design document.")
    extract.add_argument(
        "-l",
        "--languages",
        nargs="+",
        required=True,
        help="Target locale codes, e.g. fr es-MX zh-Hant.",
    )
    extract.add_argument("-o", "--output", help="Payload file (default: stdout).")

    translate = commands.add_parser("translate", help="Send a payload to the translation provider.")
    translate.add_argument("payload", help="Payload file written by the extract command.")
    translate.add_argument("-p", "--provider", help="Translation provider identifier (default: openai).")
    translate.add_argument("-m", "--model", help="Provider-specific model identifier.")
    translate.add_argument("-o", "--output", help="Localizations file (default: stdout).")

    catalog = commands.add_parser("catalog", help="Build an asset catalog from a locale folder.")
    catalog.add_argument("folder", help="Folder containing one sub-folder per locale.")
    catalog.add_argument("-o", "--output", help="Catalog file (default: stdout).")

    apply = commands.add_parser("apply", help="Clone the selected frame per locale and localize it.")
    apply.add_argument("document", help="Path to the JSON design document.")
    apply.add_argument("--localizations", help="Localizations JSON returned by the translation engine.")
    apply.add_argument(
        "--locales",
        nargs="+",
        help="Locales to produce (default: every locale in the localizations).",
    )
    apply.add_argument("--images", action="store_true", help="Replace images with locale assets.")
    apply.add_argument("--assets-root", help="Locale asset folder used for image bytes.")
    apply.add_argument("--catalog", help="Asset catalog JSON (default: scan --assets-root).")
    apply.add_argument("-o", "--output", help="Output document (default: <document>_localized.json).")
    apply.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    return parser


def _read_json(path: pathlib.Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SmartLocalError(f"File not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise SmartLocalError(f"{path} is not valid JSON: {exc}") from exc


def _emit_json(data: Any, output: Optional[str]) -> None:
    text = json.dumps(data, ensure_ascii=False, indent=2)
    if output:
        pathlib.Path(output).expanduser().write_text(text + "\n", encoding="utf-8")
    else:
        print(text)


def derive_output_path(document: pathlib.Path) -> pathlib.Path:
    return document.with_name(f"{document.stem}_localized{document.suffix}")


def execute_apply(
    *,
    document_file: str,
    output_file: str | None,
    localizations_file: str | None,
    locales: Optional[List[str]],
    replace_images: bool,
    assets_root: str | None,
    catalog_file: str | None,
    force_overwrite: bool,
    settings: SmartLocalConfig,
) -> tuple[int, ApplyResult | None, str | None]:
    """Execute an apply run and return the exit code, result, and message."""

    document_path = pathlib.Path(document_file).expanduser().resolve()
    output_path = (
        pathlib.Path(output_file).expanduser().resolve()
        if output_file
        else derive_output_path(document_path)
    )
    if output_path == document_path:
        return 1, None, "The output path matches the input document. Refusing to overwrite it."
    if output_path.exists() and not force_overwrite:
        return 1, None, "The output file already exists. Rename it or pass --force."

    try:
        document = JsonDesignDocument.load(document_path)
        localizations = (
            parse_localizations(_read_json(pathlib.Path(localizations_file).expanduser()))
            if localizations_file
            else {}
        )

        catalog = []
        retriever = None
        if replace_images:
            if not assets_root:
                return 1, None, "Image replacement needs --assets-root."
            root = pathlib.Path(assets_root).expanduser().resolve()
            catalog = (
                parse_catalog(_read_json(pathlib.Path(catalog_file).expanduser()))
                if catalog_file
                else scan_asset_folder(root)
            )
            retriever = connect_folder_source(root, catalog)

        runner = LocalizationRunner(
            host=document,
            localizations=localizations,
            locales=locales,
            replace_images=replace_images,
            catalog=catalog,
            retriever=retriever,
            clone_spacing=settings.SMARTLOCAL_CLONE_SPACING,
            max_asset_bytes=settings.SMARTLOCAL_MAX_ASSET_BYTES,
            max_catalog_entries=settings.SMARTLOCAL_MAX_CATALOG_ENTRIES,
        )
        result = asyncio.run(runner.run())
        output_path.parent.mkdir(parents=True, exist_ok=True)
        document.save(output_path)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except OSError as exc:
        return 1, None, f"Could not read or write files: {exc}"
    except SmartLocalError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Localization interrupted by user."

    return 0, result, f"Saved localized document to {output_path}"


def print_summary(result: ApplyResult) -> None:
    """Output a friendly report once processing completes."""

    print("\nLocalization complete.")
    print(f"  Locales:         {', '.join(result.locales)}")
    print(f"  Frames created:  {result.frame_count}")
    print(
        "  Text nodes:      "
        f"{result.text_replaced_count} replaced ({result.text_skipped_count} skipped)"
    )
    print(
        "  Images:          "
        f"{result.image_replaced_count} replaced, {result.image_skipped_count} skipped, "
        f"{result.image_ambiguous_count} ambiguous, {result.image_failed_count} failed"
    )
    if result.image_issues:
        print("  Image issues:")
        for issue in result.image_issues:
            score = f" (best {issue.best_score:.2f})" if issue.best_score is not None else ""
            print(f"    - [{issue.locale}] {issue.node_name}: {issue.reason}{score}")
    if result.error_messages:
        print("  Notes:")
        for message in result.error_messages:
            print(f"    - {message}")


def _run_extract(args: argparse.Namespace) -> int:
    document = JsonDesignDocument.load(pathlib.Path(args.document).expanduser())
    root = validate_selection(document.selection)
    payload = build_payload(root, args.languages)
    _emit_json(payload, args.output)
    print(f"Found {len(payload['texts'])} text nodes in {root.name}.", file=sys.stderr)
    return 0


def _run_translate(args: argparse.Namespace, settings: SmartLocalConfig) -> int:
    payload = _read_json(pathlib.Path(args.payload).expanduser())
    provider = build_provider(
        args.provider or settings.LLM_PROVIDER,
        api_key=settings.OPENAI_API_KEY,
        debug=settings.SMARTLOCAL_PROVIDER_DEBUG,
    )
    localizations = provider.localize(payload, model=args.model or settings.SMARTLOCAL_MODEL)
    _emit_json({"localizations": localizations}, args.output)
    for locale, count in summarise_localizations(localizations).items():
        print(f"  {locale}: {count} texts", file=sys.stderr)
    return 0


def _run_catalog(args: argparse.Namespace) -> int:
    entries = scan_asset_folder(pathlib.Path(args.folder).expanduser().resolve())
    _emit_json(catalog_to_dict(entries), args.output)
    print(f"Catalogued {len(entries)} assets.", file=sys.stderr)
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        settings = get_settings()
    except ConfigurationError as exc:
        print(exc)
        return 1

    setup_logging(
        "DEBUG" if args.verbose else settings.SMARTLOCAL_LOG_LEVEL,
        log_file=pathlib.Path(args.log_file) if args.log_file else None,
    )

    if args.command == "apply":
        exit_code, result, message = execute_apply(
            document_file=args.document,
            output_file=args.output,
            localizations_file=args.localizations,
            locales=args.locales,
            replace_images=args.images,
            assets_root=args.assets_root,
            catalog_file=args.catalog,
            force_overwrite=args.force,
            settings=settings,
        )
        if message:
            print(message)
        if result:
            print_summary(result)
        return exit_code

    try:
        if args.command == "extract":
            return _run_extract(args)
        if args.command == "translate":
            return _run_translate(args, settings)
        return _run_catalog(args)
    except SmartLocalError as exc:
        print(exc)
        return 1
    except OSError as exc:
        print(f"Could not read or write files: {exc}")
        return 1
    except KeyboardInterrupt:
        return 2


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
