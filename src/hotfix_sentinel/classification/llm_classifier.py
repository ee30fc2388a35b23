"""
LLM-backed incident classification.

The model is asked for a strict JSON verdict. Anything that cannot be
parsed into one of the known classifications raises
``ClassificationFailure``; the workflow then stops before any external
mutation and the batch is redelivered.
"""
import json
import logging
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from ..constants import (
    CLASSIFICATION_TEMPERATURE,
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_LLM_MAX_TOKENS,
    DEFAULT_SOURCE_PATH_PREFIX,
    MAX_EVIDENCE_CHARS,
)
from ..exceptions import ClassificationFailure, LLMError
from ..llm.base import LLMProvider
from ..models import (
    Classification,
    CodeFixable,
    ConfigurationIssue,
    Evidence,
    NoIncident,
    Unsafe,
)
from ..security import sanitize_for_llm
from .base import IncidentClassifier, evidence_text

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an automated incident triage engine for a production service.
You receive raw error logs and must classify the incident as exactly one of:

- "code_fixable": a minimal change to ONE source file safely fixes the defect
  (e.g. a missing null check, an off-by-one index, unguarded parsing).
  The stack trace must identify that file.
- "configuration_issue": missing secrets, secret manager version errors,
  environment variables, permissions, unreachable configured hosts or invalid
  properties. Code must not be changed for these.
- "unsafe": anything that cannot be safely fixed by automation, or where you
  are not confident.
- "no_incident": the logs contain no actual problem.

Respond with ONLY a JSON object of this shape:
{
  "classification": "code_fixable" | "configuration_issue" | "unsafe" | "no_incident",
  "file_path": "repository path of the file to change (code_fixable only)",
  "summary": "one-line incident summary",
  "root_cause": "root cause analysis",
  "reason": "why automation must not fix it (unsafe only)",
  "confidence": 0.0-1.0
}"""


class LLMVerdict(BaseModel):
    """Schema of the model's JSON answer."""
    classification: Literal["code_fixable", "configuration_issue", "unsafe", "no_incident"]
    file_path: Optional[str] = None
    summary: str = ""
    root_cause: str = ""
    reason: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


def extract_json(text: str) -> str:
    """Strip markdown code fences LLMs sometimes wrap JSON in."""
    text = text.strip()

    if "```json" in text:
        start = text.find("```json") + 7
        end = text.find("```", start)
        return text[start:end if end != -1 else None].strip()
    if "```" in text:
        start = text.find("```") + 3
        end = text.find("```", start)
        return text[start:end if end != -1 else None].strip()

    # Tolerate prose around a single object
    start, end = text.find("{"), text.rfind("}")
    if start > 0 and end > start:
        return text[start:end + 1]
    return text


class LLMClassifier(IncidentClassifier):
    """
    Classifier delegating judgement to an LLM provider.

    Args:
        provider: LLM provider
        confidence_threshold: Code-fixable verdicts below this confidence
            are downgraded to ``Unsafe``
        source_path_prefix: Prepended to the model's file path when missing
        max_evidence_chars: Evidence is truncated to this many characters
    """

    def __init__(
        self,
        provider: LLMProvider,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        source_path_prefix: str = DEFAULT_SOURCE_PATH_PREFIX,
        max_evidence_chars: int = MAX_EVIDENCE_CHARS
    ):
        self.provider = provider
        self.confidence_threshold = confidence_threshold
        self.source_path_prefix = source_path_prefix
        self.max_evidence_chars = max_evidence_chars

    def _classify(self, evidence: List[Evidence]) -> Classification:
        logs = sanitize_for_llm(evidence_text(evidence), max_length=self.max_evidence_chars)
        user_prompt = f"## Error logs ({len(evidence)} message(s))\n\n{logs}"
        if self.source_path_prefix:
            user_prompt += f"\n\nSource files live under '{self.source_path_prefix}' in the repository."

        messages = [
            self.provider.create_system_message(SYSTEM_PROMPT),
            self.provider.create_user_message(user_prompt),
        ]

        try:
            response = self.provider.complete(
                messages,
                temperature=CLASSIFICATION_TEMPERATURE,
                max_tokens=DEFAULT_LLM_MAX_TOKENS
            )
        except LLMError as e:
            raise ClassificationFailure(f"Classifier unreachable: {e}") from e

        return self.parse_verdict(response.content)

    def parse_verdict(self, text: str) -> Classification:
        """
        Turn the model's answer into a classification.

        Raises:
            ClassificationFailure: If the answer is not a valid verdict
        """
        try:
            verdict = LLMVerdict.model_validate(json.loads(extract_json(text)))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.debug(f"Unparseable classifier answer: {text[:500]}")
            raise ClassificationFailure(f"Classifier returned an invalid verdict: {e}") from e

        if verdict.classification == "no_incident":
            return NoIncident(reason=verdict.reason or verdict.summary or "no incident")

        if verdict.classification == "configuration_issue":
            return ConfigurationIssue(summary=verdict.summary, root_cause=verdict.root_cause)

        if verdict.classification == "unsafe":
            return Unsafe(reason=verdict.reason or "classified unsafe", summary=verdict.summary)

        if not verdict.file_path or not verdict.file_path.strip():
            return Unsafe(reason="code-fixable verdict without a file path", summary=verdict.summary)

        if verdict.confidence < self.confidence_threshold:
            logger.info(
                f"Downgrading code-fixable verdict: confidence {verdict.confidence:.2f} "
                f"< threshold {self.confidence_threshold:.2f}"
            )
            return Unsafe(
                reason=(
                    f"classifier confidence {verdict.confidence:.2f} below "
                    f"threshold {self.confidence_threshold:.2f}"
                ),
                summary=verdict.summary,
            )

        return CodeFixable(
            file_path_hint=self._repository_path(verdict.file_path.strip()),
            summary=verdict.summary,
            root_cause=verdict.root_cause,
        )

    def _repository_path(self, path: str) -> str:
        path = path.lstrip("/")
        prefix = self.source_path_prefix.lstrip("/")
        if prefix and not path.startswith(prefix):
            return f"{prefix.rstrip('/')}/{path}"
        return path
