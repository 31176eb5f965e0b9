"""Core data structures for the SmartLocal localization engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class Uniform:
    """An attribute that holds a single value across the inspected range."""

    value: Any


class Mixed:
    """An attribute that has no single value across the inspected range."""

    _instance: Optional["Mixed"] = None

    def __new__(cls) -> "Mixed":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MIXED"


MIXED = Mixed()

AttributeValue = Union[Uniform, Mixed]


@dataclass
class StyleSegment:
    """A contiguous character range sharing one set of text attributes."""

    start: int
    end: int
    attributes: Dict[str, AttributeValue]

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class TextDescriptor:
    """Read-only snapshot of a text node taken before any clone is edited."""

    node_id: str
    text: str
    char_count: int
    lines: int
    width: int
    height: int

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.node_id,
            "text": self.text,
            "charCount": self.char_count,
            "lines": self.lines,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class ImageDescriptor:
    """One image paint on one node of the original subtree."""

    node_id: str
    node_name: str
    paint_index: int


@dataclass(frozen=True)
class AssetCatalogEntry:
    """A declared locale-specific image file."""

    key: str
    locale: str
    rel_path: str
    stem: str
    extension: str
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "locale": self.locale,
            "relPath": self.rel_path,
            "stem": self.stem,
            "extension": self.extension,
            "size": self.size,
        }


class MatchStatus(str, Enum):
    """Outcome of matching one node name against a locale's candidates."""

    MATCHED = "matched"
    AMBIGUOUS = "ambiguous"
    LOW_CONFIDENCE = "low-confidence"
    NO_CANDIDATE = "no-candidate"


@dataclass(frozen=True)
class ScoredCandidate:
    entry: AssetCatalogEntry
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.entry.key,
            "relPath": self.entry.rel_path,
            "score": round(self.score, 4),
        }


@dataclass
class MatchDecision:
    """Ranked candidates and the classification derived from them."""

    status: MatchStatus
    best: Optional[ScoredCandidate] = None
    second: Optional[ScoredCandidate] = None
    top: List[ScoredCandidate] = field(default_factory=list)

    @property
    def matched_entry(self) -> Optional[AssetCatalogEntry]:
        if self.status is MatchStatus.MATCHED and self.best is not None:
            return self.best.entry
        return None


@dataclass
class ImageIssue:
    """A per-node image replacement that was refused or failed."""

    locale: str
    node_id: str
    node_name: str
    reason: str
    best_score: Optional[float] = None
    second_best_score: Optional[float] = None
    candidates: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "locale": self.locale,
            "nodeId": self.node_id,
            "nodeName": self.node_name,
            "reason": self.reason,
        }
        if self.best_score is not None:
            data["bestScore"] = round(self.best_score, 4)
        if self.second_best_score is not None:
            data["secondBestScore"] = round(self.second_best_score, 4)
        if self.candidates:
            data["candidates"] = list(self.candidates)
        return data


@dataclass
class ApplyResult:
    """Aggregated counters and issues reported after an apply run."""

    locales: List[str] = field(default_factory=list)
    frame_count: int = 0
    text_replaced_count: int = 0
    text_skipped_count: int = 0
    image_replaced_count: int = 0
    image_skipped_count: int = 0
    image_ambiguous_count: int = 0
    image_failed_count: int = 0
    image_issues: List[ImageIssue] = field(default_factory=list)
    error_messages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "locales": list(self.locales),
            "frameCount": self.frame_count,
            "textReplacedCount": self.text_replaced_count,
            "textSkippedCount": self.text_skipped_count,
            "imageReplacedCount": self.image_replaced_count,
            "imageSkippedCount": self.image_skipped_count,
            "imageAmbiguousCount": self.image_ambiguous_count,
            "imageFailedCount": self.image_failed_count,
            "imageIssues": [issue.to_dict() for issue in self.image_issues],
        }
