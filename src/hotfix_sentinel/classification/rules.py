"""Rule-based incident classification.

Pattern rules over the raw log text, checked in order:

1. Configuration or secret symptoms: ``ConfigurationIssue``, even when
   the log line carries no error level (e.g. "Secret Manager: version not found").
2. No error signal at all: ``NoIncident``.
3. A known-fixable exception type plus an application stack frame that
   names a source file: ``CodeFixable`` targeting that file.
4. Anything else: ``Unsafe``.

Example:
    >>> classifier = RuleBasedClassifier(source_path_prefix="apps/shop/src/main/java/")
    >>> classifier.classify([Evidence.from_text(log_text)])
"""
import logging
import re
from typing import List, Optional, Tuple

from ..constants import DEFAULT_SOURCE_PATH_PREFIX
from ..models import (
    Classification,
    CodeFixable,
    ConfigurationIssue,
    Evidence,
    NoIncident,
    Unsafe,
)
from .base import IncidentClassifier, evidence_text

logger = logging.getLogger(__name__)

ERROR_SIGNAL = re.compile(
    r"\b(?:ERROR|FATAL|SEVERE|CRITICAL)\b|Exception\b|Error\b|Traceback \(most recent call last\)|\bpanic:"
)

CONFIG_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("secret manager access failure", re.compile(
        r"secret\s*manager|SecretVersion|secret version|secret \S+ (?:not found|does not exist)",
        re.IGNORECASE)),
    ("missing environment variable", re.compile(
        r"(?:environment variable|env var)\s+\S+\s+(?:is\s+)?(?:not set|missing|undefined|required)"
        r"|missing (?:required )?(?:environment variable|env var)"
        r"|os\.environ\[",
        re.IGNORECASE)),
    ("permission denied", re.compile(
        r"permission denied|PERMISSION_DENIED|AccessDenied|403 Forbidden",
        re.IGNORECASE)),
    ("connection refused to configured host", re.compile(
        r"connection refused|ECONNREFUSED|UnknownHostException|Name or service not known",
        re.IGNORECASE)),
    ("invalid configuration property", re.compile(
        r"invalid (?:configuration )?property|could not resolve placeholder"
        r"|failed to bind properties|ConfigurationException|ImproperlyConfigured",
        re.IGNORECASE)),
]

FIXABLE_EXCEPTIONS = (
    "NullPointerException",
    "ArrayIndexOutOfBoundsException",
    "StringIndexOutOfBoundsException",
    "IndexOutOfBoundsException",
    "ArithmeticException",
    "NumberFormatException",
    "KeyError",
    "AttributeError",
    "TypeError",
    "ZeroDivisionError",
    "IndexError",
)

FIXABLE_EXCEPTION_RE = re.compile(r"\b(" + "|".join(FIXABLE_EXCEPTIONS) + r")\b")
ANY_EXCEPTION_RE = re.compile(r"\b([A-Z]\w*(?:Exception|Error))\b")

JAVA_FRAME_RE = re.compile(r"\bat\s+([\w$.]+)\.[\w$<>]+\(([\w$]+\.(?:java|kt|scala)):(\d+)\)")
BARE_JAVA_FILE_RE = re.compile(r"\b([\w$]+\.(?:java|kt|scala)):(\d+)\b")
PYTHON_FRAME_RE = re.compile(r'File "([^"]+\.py)", line (\d+)')

LIBRARY_PACKAGES = (
    "java.", "javax.", "jdk.", "sun.", "com.sun.", "kotlin.", "scala.",
    "org.springframework.", "org.apache.", "org.hibernate.", "io.netty.", "reactor.",
)
PYTHON_LIBRARY_MARKERS = ("site-packages", "dist-packages", "/lib/python", "<frozen")


def _line_containing(text: str, pos: int, limit: int = 300) -> str:
    start = text.rfind("\n", 0, pos) + 1
    end = text.find("\n", pos)
    line = text[start:end if end != -1 else len(text)].strip()
    return line[:limit]


def find_java_frame(text: str) -> Optional[Tuple[str, int]]:
    """Innermost application frame as (repository-relative path, line)."""
    for match in JAVA_FRAME_RE.finditer(text):
        qualified_class, file_name, line = match.groups()
        if qualified_class.startswith(LIBRARY_PACKAGES):
            continue
        package = qualified_class.split("$")[0].rsplit(".", 1)[0] if "." in qualified_class else ""
        directory = package.replace(".", "/")
        return (f"{directory}/{file_name}" if directory else file_name, int(line))

    match = BARE_JAVA_FILE_RE.search(text)
    if match:
        return match.group(1), int(match.group(2))
    return None


def find_python_frame(text: str) -> Optional[Tuple[str, int]]:
    """Innermost application frame; Python prints it last."""
    found = None
    for match in PYTHON_FRAME_RE.finditer(text):
        path, line = match.groups()
        if any(marker in path for marker in PYTHON_LIBRARY_MARKERS):
            continue
        found = (path.lstrip("./"), int(line))
    return found


class RuleBasedClassifier(IncidentClassifier):
    """
    Deterministic classifier for common production failure signatures.

    Args:
        source_path_prefix: Prepended to file paths taken from stack frames
            so they resolve inside the repository
    """

    def __init__(self, source_path_prefix: str = DEFAULT_SOURCE_PATH_PREFIX):
        self.source_path_prefix = source_path_prefix

    def _classify(self, evidence: List[Evidence]) -> Classification:
        text = evidence_text(evidence)

        for label, pattern in CONFIG_PATTERNS:
            match = pattern.search(text)
            if match:
                return ConfigurationIssue(
                    summary=f"Configuration issue: {label}",
                    root_cause=_line_containing(text, match.start()),
                )

        if not ERROR_SIGNAL.search(text):
            return NoIncident(reason="no error signal in evidence")

        exception = FIXABLE_EXCEPTION_RE.search(text)
        if exception:
            frame = find_java_frame(text) or find_python_frame(text)
            if frame:
                path, line = frame
                return CodeFixable(
                    file_path_hint=self._repository_path(path),
                    summary=f"{exception.group(1)} at {path.rsplit('/', 1)[-1]}:{line}",
                    root_cause=_line_containing(text, exception.start()),
                )
            return Unsafe(
                reason=f"{exception.group(1)} without an application stack frame naming the faulty file",
                summary=_line_containing(text, exception.start()),
            )

        other = ANY_EXCEPTION_RE.search(text)
        if other:
            return Unsafe(
                reason=f"{other.group(1)} is not a known mechanically fixable failure",
                summary=_line_containing(text, other.start()),
            )

        signal = ERROR_SIGNAL.search(text)
        return Unsafe(
            reason="error reported without a recognisable exception",
            summary=_line_containing(text, signal.start()),
        )

    def _repository_path(self, path: str) -> str:
        prefix = self.source_path_prefix
        if prefix and not path.startswith(prefix.lstrip("/")):
            return f"{prefix.rstrip('/')}/{path}"
        return path

