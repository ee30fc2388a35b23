"""
Incident classifier interface.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Sequence

from ..models import Classification, Evidence, NoIncident

logger = logging.getLogger(__name__)


def evidence_text(evidence: Sequence[Evidence]) -> str:
    """Join a batch into one text block, one message per paragraph."""
    return "\n\n".join(item.data for item in evidence)


class IncidentClassifier(ABC):
    """
    Maps an evidence batch to exactly one classification.

    Classifiers must be conservative: when not confident that an issue is
    both safely scoped and mechanically fixable, they return ``Unsafe``.
    """

    def classify(self, evidence: Sequence[Evidence]) -> Classification:
        """
        Classify an evidence batch.

        Returns:
            ``NoIncident`` for an empty batch, otherwise the verdict

        Raises:
            ClassificationFailure: If no verdict could be produced
        """
        if not evidence:
            logger.debug("Empty evidence batch, nothing to classify")
            return NoIncident(reason="empty evidence batch")

        verdict = self._classify(list(evidence))
        logger.info(f"{type(self).__name__} verdict: {verdict.kind.value}")
        return verdict

    @abstractmethod
    def _classify(self, evidence: List[Evidence]) -> Classification:
        pass
