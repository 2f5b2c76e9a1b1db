"""
Error classification: detectors recognize known connection problems and
formatters render the resulting help text.
"""

from sql_runner.errors.base import Detector
from sql_runner.errors.detectors import DEFAULT_DETECTORS
from sql_runner.errors.formatters import (
    ConsoleErrorFormatter,
    JsonErrorFormatter,
    MarkdownErrorFormatter,
    SimpleErrorFormatter,
    create_default_formatter,
)
from sql_runner.errors.handler import ConnectionErrorHandler
from sql_runner.errors.registry import DetectorRegistry, create_default_registry

__all__ = [
    "DEFAULT_DETECTORS",
    "ConnectionErrorHandler",
    "ConsoleErrorFormatter",
    "Detector",
    "DetectorRegistry",
    "JsonErrorFormatter",
    "MarkdownErrorFormatter",
    "SimpleErrorFormatter",
    "create_default_formatter",
    "create_default_registry",
]
