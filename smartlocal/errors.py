"""Error definitions for the SmartLocal localization engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Categorises failures by the scope they abort."""

    LOCALE = auto()
    NODE = auto()


class SmartLocalError(Exception):
    """Base exception for all custom errors."""


class ValidationError(SmartLocalError):
    """Raised when top-level input is insufficient to start a run."""


class SelectionError(ValidationError):
    """Raised when the selection is not exactly one localizable root."""


class InputValidationError(ValidationError):
    """Raised when locales, translations, or the asset catalog are unusable."""


class CatalogError(SmartLocalError):
    """Raised when an asset catalog or asset folder cannot be used at all."""


class DocumentFormatError(SmartLocalError):
    """Raised when a design document file is malformed."""


class FontUnavailableError(SmartLocalError):
    """Raised when the host cannot load a font resource."""


class ImageDecodeError(SmartLocalError):
    """Raised when the host refuses to create an image from raw bytes."""


class ConfigurationError(SmartLocalError):
    """Raised when the merged configuration does not validate."""


class ProviderConfigurationError(SmartLocalError):
    """Raised when the translation provider is misconfigured."""


class ProviderError(SmartLocalError):
    """Raised when the translation provider fails permanently."""


@dataclass
class ErrorRecord:
    """Stores context for a handled failure."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None
    locale: Optional[str] = None
    node_id: Optional[str] = None
