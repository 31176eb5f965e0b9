"""High-level orchestration for applying localizations to cloned frames."""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from .catalog import DEFAULT_MAX_ASSET_BYTES, DEFAULT_MAX_CATALOG_ENTRIES, LocaleAssetIndex
from .correspondence import Correspondence, build_correspondence
from .documents import ROOT_KINDS, DesignHost, DesignNode
from .errors import ErrorCategory, InputValidationError, SelectionError
from .matching import decide_match
from .payloads import extract_image_descriptors
from .policy import FailurePolicy
from .retrieval import ImageByteRetriever
from .structures import (
    ApplyResult,
    AssetCatalogEntry,
    ImageDescriptor,
    ImageIssue,
    MatchDecision,
    MatchStatus,
)
from .styles import replace_text, required_fonts

log = logging.getLogger(__name__)

MAX_IMAGE_ISSUES = 30
DEFAULT_CLONE_SPACING = 40.0


class RunState(Enum):
    VALIDATING_SELECTION = "validating-selection"
    VALIDATING_INPUTS = "validating-inputs"
    PROCESSING = "per-locale"
    AGGREGATING = "aggregating"
    DONE = "done"
    REJECTED = "rejected"


def resolve_locales(
    locales: Optional[Sequence[str]],
    localizations: Mapping[str, Mapping[str, str]],
) -> List[str]:
    """Explicit locales win; otherwise every locale in the translation map."""

    source = locales if locales else list(localizations.keys())
    resolved: List[str] = []
    # Locale codes are opaque; they must stay byte-equal to the map keys.
    for locale in source:
        if locale.strip() and locale not in resolved:
            resolved.append(locale)
    return resolved


def validate_selection(selection: Sequence[DesignNode]) -> DesignNode:
    if not selection:
        raise SelectionError("Please select the original frame.")
    if len(selection) > 1:
        raise SelectionError("Please select only one frame.")
    node = selection[0]
    if node.kind not in ROOT_KINDS:
        raise SelectionError("Please select a frame, component, or instance.")
    return node


class LocalizationRunner:
    """Clones the selected frame per locale and localizes each clone.

    Locales and the nodes inside them are processed one after another. A
    failure inside one locale abandons that clone only; a failure on one node
    skips that node only. Both end up in the result instead of stopping the
    run.
    """

    def __init__(
        self,
        *,
        host: DesignHost,
        localizations: Optional[Mapping[str, Mapping[str, str]]] = None,
        locales: Optional[Sequence[str]] = None,
        replace_images: bool = False,
        catalog: Optional[Sequence[AssetCatalogEntry]] = None,
        retriever: Optional[ImageByteRetriever] = None,
        clone_spacing: float = DEFAULT_CLONE_SPACING,
        max_asset_bytes: int = DEFAULT_MAX_ASSET_BYTES,
        max_catalog_entries: int = DEFAULT_MAX_CATALOG_ENTRIES,
    ) -> None:
        self.host = host
        self.localizations: Dict[str, Dict[str, str]] = {
            locale: dict(entries) for locale, entries in (localizations or {}).items()
        }
        self.requested_locales = list(locales) if locales else None
        self.replace_images = replace_images
        self.catalog = list(catalog or [])
        self.retriever = retriever
        self.clone_spacing = clone_spacing
        self.max_asset_bytes = max_asset_bytes
        self.max_catalog_entries = max_catalog_entries

        self.state = RunState.VALIDATING_SELECTION
        self.failure_policy = FailurePolicy()
        self.asset_index: Optional[LocaleAssetIndex] = None

    def _transition(self, state: RunState) -> None:
        log.debug("Run state %s -> %s", self.state.value, state.value)
        self.state = state

    def validate(self) -> tuple[DesignNode, List[str]]:
        """Check every input up front; raise before any clone exists."""

        try:
            self._transition(RunState.VALIDATING_SELECTION)
            root = validate_selection(self.host.selection)

            self._transition(RunState.VALIDATING_INPUTS)
            locales = resolve_locales(self.requested_locales, self.localizations)
            if not locales:
                raise InputValidationError("No target locales found in the request or response.")

            has_text = any(self.localizations.get(locale) for locale in locales)
            if self.replace_images:
                if not self.catalog:
                    raise InputValidationError(
                        "Image replacement needs an asset catalog with at least one entry."
                    )
                if len(self.catalog) > self.max_catalog_entries:
                    raise InputValidationError(
                        f"Asset catalog has {len(self.catalog)} entries; "
                        f"the limit is {self.max_catalog_entries}."
                    )
                if self.retriever is None:
                    raise InputValidationError("Image replacement needs an image byte source.")
            elif not has_text:
                raise InputValidationError(
                    "Nothing to apply: no translated text and image replacement is off."
                )
        except (SelectionError, InputValidationError):
            self._transition(RunState.REJECTED)
            raise
        return root, locales

    async def run(self) -> ApplyResult:
        root, locales = self.validate()

        # Snapshot before the document starts changing under us.
        image_descriptors = extract_image_descriptors(root) if self.replace_images else []
        if self.replace_images:
            self.asset_index = LocaleAssetIndex(self.catalog, max_asset_bytes=self.max_asset_bytes)
            if self.retriever is not None:
                self.retriever.reset_cache()

        result = ApplyResult(locales=list(locales))
        self._transition(RunState.PROCESSING)
        log.info("Applying %d locale(s) to %s.", len(locales), root.name)

        for position, locale in enumerate(locales):
            log.info("Processing locale %d/%d: %s", position + 1, len(locales), locale)
            try:
                await self._process_locale(
                    root=root,
                    locale=locale,
                    position=position,
                    image_descriptors=image_descriptors,
                    result=result,
                )
            except Exception as exc:
                self.failure_policy.handle_error(
                    ErrorCategory.LOCALE,
                    f"Failed to process locale {locale}. Continuing with the next locale.",
                    details=str(exc),
                    locale=locale,
                )
                continue
            result.frame_count += 1

        self._transition(RunState.AGGREGATING)
        result.error_messages = self.failure_policy.messages
        log.info(
            "Created %d localized frame(s); images replaced=%d skipped=%d ambiguous=%d failed=%d.",
            result.frame_count,
            result.image_replaced_count,
            result.image_skipped_count,
            result.image_ambiguous_count,
            result.image_failed_count,
        )
        self._transition(RunState.DONE)
        return result

    async def _process_locale(
        self,
        *,
        root: DesignNode,
        locale: str,
        position: int,
        image_descriptors: Sequence[ImageDescriptor],
        result: ApplyResult,
    ) -> None:
        clone = self.host.clone(root)
        clone.name = f"{root.name}_{locale}"
        clone.y = root.y + (position + 1) * (root.height + self.clone_spacing)

        correspondence = build_correspondence(root, clone)

        translations = self.localizations.get(locale, {})
        if translations:
            await self._apply_text(locale, translations, correspondence, result)
        if self.asset_index is not None and self.retriever is not None:
            await self._apply_images(
                locale,
                image_descriptors,
                self.asset_index.candidates_for(locale),
                self.retriever,
                correspondence,
                result,
            )

    async def _apply_text(
        self,
        locale: str,
        translations: Mapping[str, str],
        correspondence: Correspondence,
        result: ApplyResult,
    ) -> None:
        # Load every font first so an unavailable font cannot leave the
        # clone half translated.
        unloadable: set[str] = set()
        for node_id in translations:
            node = correspondence.text_nodes.get(node_id)
            if node is None:
                continue
            try:
                for font in required_fonts(node):
                    await self.host.load_font(font)
            except Exception as exc:
                unloadable.add(node_id)
                self.failure_policy.handle_error(
                    ErrorCategory.NODE,
                    f"Could not load fonts for text {node_id} in {locale}. Skipping this element.",
                    details=str(exc),
                    locale=locale,
                    node_id=node_id,
                )

        for node_id, translated in translations.items():
            node = correspondence.text_nodes.get(node_id)
            if node is None:
                log.debug("No text node %s in %s; leaving it untranslated.", node_id, locale)
                continue
            if node_id in unloadable:
                result.text_skipped_count += 1
                continue
            try:
                replace_text(node, translated)
            except Exception as exc:
                result.text_skipped_count += 1
                self.failure_policy.handle_error(
                    ErrorCategory.NODE,
                    f"Could not replace text {node_id} in {locale}. Skipping this element.",
                    details=str(exc),
                    locale=locale,
                    node_id=node_id,
                )
                continue
            result.text_replaced_count += 1

    async def _apply_images(
        self,
        locale: str,
        descriptors: Sequence[ImageDescriptor],
        pool: Sequence[AssetCatalogEntry],
        retriever: ImageByteRetriever,
        correspondence: Correspondence,
        result: ApplyResult,
    ) -> None:
        for descriptor in descriptors:
            target = correspondence.all_nodes.get(descriptor.node_id)
            if target is None:
                result.image_skipped_count += 1
                log.warning("No cloned counterpart for image node %s.", descriptor.node_id)
                continue

            decision = decide_match(descriptor.node_name, pool)
            if decision.status is MatchStatus.AMBIGUOUS:
                result.image_ambiguous_count += 1
                self._record_issue(result, locale, descriptor, decision.status.value, decision)
                continue
            entry = decision.matched_entry
            if entry is None:
                result.image_skipped_count += 1
                self._record_issue(result, locale, descriptor, decision.status.value, decision)
                continue

            try:
                handle = await retriever.fetch_handle(entry.key, self.host.create_image)
                if handle is None:
                    result.image_failed_count += 1
                    self._record_issue(result, locale, descriptor, "read-failed", decision)
                    continue
                paint = target.fills[descriptor.paint_index]
                target.fills[descriptor.paint_index] = replace(paint, image_hash=handle)
            except Exception as exc:
                result.image_failed_count += 1
                self._record_issue(result, locale, descriptor, "read-failed", decision)
                self.failure_policy.handle_error(
                    ErrorCategory.NODE,
                    f"Could not replace image on {descriptor.node_name!r} in {locale}. "
                    "Skipping this element.",
                    details=str(exc),
                    locale=locale,
                    node_id=descriptor.node_id,
                )
                continue
            result.image_replaced_count += 1
            log.debug("Replaced %r with %s in %s.", descriptor.node_name, entry.rel_path, locale)

    def _record_issue(
        self,
        result: ApplyResult,
        locale: str,
        descriptor: ImageDescriptor,
        reason: str,
        decision: MatchDecision,
    ) -> None:
        log.info("Image %r in %s not replaced: %s.", descriptor.node_name, locale, reason)
        if len(result.image_issues) >= MAX_IMAGE_ISSUES:
            return
        result.image_issues.append(
            ImageIssue(
                locale=locale,
                node_id=descriptor.node_id,
                node_name=descriptor.node_name,
                reason=reason,
                best_score=decision.best.score if decision.best else None,
                second_best_score=decision.second.score if decision.second else None,
                candidates=[candidate.to_dict() for candidate in decision.top],
            )
        )
