"""
Fix authoring: the code-generation step of the code-fix path.

A ``FixAuthor`` receives the current file content and the incident and
returns the complete modified file. It never touches source control; the
workflow commits the proposal through the gateway.
"""
import logging
import re
from abc import ABC, abstractmethod
from typing import Callable, Sequence, Union

from pydantic import BaseModel, ConfigDict, field_validator

from ..constants import DEFAULT_FIX_MAX_TOKENS, FIX_TEMPERATURE, MAX_EVIDENCE_CHARS
from ..exceptions import FixGenerationError, LLMError
from ..llm.base import LLMProvider
from ..models import CodeFixable, Evidence
from ..security import sanitize_for_llm
from .base import evidence_text

logger = logging.getLogger(__name__)


class FixProposal(BaseModel):
    """Complete replacement content for one file."""
    model_config = ConfigDict(frozen=True)

    new_content: str
    commit_message: str
    fix_summary: str = ""

    @field_validator("commit_message")
    @classmethod
    def require_message(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("commit_message cannot be empty")
        return v


class FixAuthor(ABC):
    """Produces a minimal fix for a code-fixable incident."""

    @abstractmethod
    def propose_fix(
        self,
        classification: CodeFixable,
        path: str,
        current_content: str,
        evidence: Sequence[Evidence]
    ) -> FixProposal:
        """
        Return the modified file.

        Raises:
            FixGenerationError: If no fix could be produced
        """
        pass


FixFunction = Callable[[CodeFixable, str, str, Sequence[Evidence]], Union[FixProposal, str]]


class CallableFixAuthor(FixAuthor):
    """
    Adapts a plain function into a ``FixAuthor``.

    The function may return a ``FixProposal`` or just the new content, in
    which case a commit message is derived from the incident summary.
    """

    def __init__(self, func: FixFunction):
        self.func = func

    def propose_fix(self, classification, path, current_content, evidence) -> FixProposal:
        result = self.func(classification, path, current_content, evidence)
        if isinstance(result, FixProposal):
            return result
        if not isinstance(result, str):
            raise FixGenerationError(f"Fix function returned {type(result).__name__}, expected str")
        return FixProposal(
            new_content=result,
            commit_message=f"Hotfix: {classification.summary or path}",
            fix_summary=classification.summary,
        )


FIX_SYSTEM_PROMPT = """You are a senior engineer applying a production hotfix.
Make the SMALLEST possible change to the given file that fixes the incident.
Do not reformat, rename or refactor anything else.

Answer in exactly this format:
COMMIT_MESSAGE: <one line, imperative mood>
FIX_SUMMARY: <one or two sentences describing the change>
<<<FILE
<the complete modified file>
FILE>>>"""

_FIELD_RE = re.compile(r"^(COMMIT_MESSAGE|FIX_SUMMARY):\s*(.*)$", re.MULTILINE)
_FILE_RE = re.compile(r"<<<FILE\n(.*?)\n?FILE>>>", re.DOTALL)


def parse_fix_response(text: str) -> FixProposal:
    """
    Parse the delimited fix answer.

    Raises:
        FixGenerationError: If the answer does not contain a file block
    """
    file_match = _FILE_RE.search(text)
    if not file_match:
        raise FixGenerationError("Fix answer did not contain a <<<FILE block")

    fields = {name: value.strip() for name, value in _FIELD_RE.findall(text[:file_match.start()])}
    content = file_match.group(1)
    if not content.endswith("\n"):
        content += "\n"

    try:
        return FixProposal(
            new_content=content,
            commit_message=fields.get("COMMIT_MESSAGE", ""),
            fix_summary=fields.get("FIX_SUMMARY", ""),
        )
    except ValueError as e:
        raise FixGenerationError(f"Invalid fix answer: {e}") from e


class LLMFixAuthor(FixAuthor):
    """Asks an LLM provider for the modified file."""

    def __init__(
        self,
        provider: LLMProvider,
        max_tokens: int = DEFAULT_FIX_MAX_TOKENS,
        max_evidence_chars: int = MAX_EVIDENCE_CHARS
    ):
        self.provider = provider
        self.max_tokens = max_tokens
        self.max_evidence_chars = max_evidence_chars

    def build_prompt(
        self,
        classification: CodeFixable,
        path: str,
        current_content: str,
        evidence: Sequence[Evidence]
    ) -> str:
        logs = sanitize_for_llm(evidence_text(evidence), max_length=self.max_evidence_chars)
        return "\n".join([
            f"## Incident\n{classification.summary}",
            f"\n## Root cause\n{classification.root_cause or 'unknown'}",
            f"\n## Error logs\n{logs}",
            f"\n## File: {path}",
            "<<<FILE",
            current_content,
            "FILE>>>",
        ])

    def propose_fix(self, classification, path, current_content, evidence) -> FixProposal:
        messages = [
            self.provider.create_system_message(FIX_SYSTEM_PROMPT),
            self.provider.create_user_message(
                self.build_prompt(classification, path, current_content, evidence)
            ),
        ]

        try:
            response = self.provider.complete(
                messages,
                temperature=FIX_TEMPERATURE,
                max_tokens=self.max_tokens
            )
        except LLMError as e:
            raise FixGenerationError(f"Fix author unreachable: {e}") from e

        if response.finish_reason in ("length", "max_tokens"):
            raise FixGenerationError("Fix answer was truncated by the token limit")

        proposal = parse_fix_response(response.content)
        logger.info(f"Fix proposed for {path}: {proposal.commit_message}")
        return proposal
