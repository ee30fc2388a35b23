"""
Remediation workflow for hotfix-sentinel.

An explicit state machine that classifies an evidence batch and runs the
fixed action sequence for the verdict:

    CLASSIFYING -> CODE_FIX | CONFIG | UNSAFE -> REPORTING -> TERMINATED

Every gateway call runs on its own thread under a bounded timeout; a call
that overruns is abandoned and reported as a transport failure. The first failed action
terminates the run as ABORTED with the failure as the last recorded
outcome; nothing is compensated.

Classes:
    RemediationWorkflow: Executes one incident run per evidence batch

Example:
    >>> workflow = RemediationWorkflow(RuleBasedClassifier(), in_memory_gateway())
    >>> record = workflow.run([Evidence.from_text(log_text)])
    >>> record.status
    <TerminalStatus.SUCCESS: 'success'>
"""

import contextvars
import logging
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..audit import AuditTrail
from ..classification.base import IncidentClassifier
from ..classification.fixer import FixAuthor
from ..constants import DEFAULT_ACTION_TIMEOUT_SECONDS, DEFAULT_BRANCH_PREFIX
from ..exceptions import ClassificationFailure, GatewayError, IncidentAbortedError
from ..gateway.base import ActionGateway, ErrorKind, GatewayResult
from ..logging_context import LoggingContext
from ..models import (
    ActionName,
    ActionOutcome,
    Classification,
    CodeFixable,
    ConfigurationIssue,
    Evidence,
    IncidentRecord,
    NoIncident,
    TerminalStatus,
    Unsafe,
    WorkflowState,
    generate_incident_id,
    incident_key_for,
)
from ..security import sanitize_error
from . import reporting

logger = logging.getLogger(__name__)

# Payload keys too large or sensitive to keep in the audit trail
UNRECORDED_PAYLOAD_KEYS = ("content",)

CLASSIFICATION_TYPES = (CodeFixable, ConfigurationIssue, Unsafe, NoIncident)


@dataclass
class _RunState:
    """Mutable bookkeeping for the run in flight."""

    incident_id: str
    incident_key: str
    evidence: Tuple[Evidence, ...]
    started_at: datetime
    state: WorkflowState = WorkflowState.CLASSIFYING
    classification: Optional[Classification] = None
    outcomes: List[ActionOutcome] = field(default_factory=list)
    references: Dict[str, str] = field(default_factory=dict)
    abort_reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return bool(self.outcomes) and not self.outcomes[-1].success


class RemediationWorkflow:
    """
    Sequential, fail-fast remediation of one incident per evidence batch.

    Args:
        classifier: Maps the evidence batch to a classification
        gateway: Source-control, issue-tracker and notifier capabilities
        audit_trail: Where outcomes are recorded (in-memory if omitted)
        fix_author: Produces the modified file on the code-fix path; without
            one, code-fixable incidents abort at ``updateFile``
        action_timeout: Seconds each gateway call may take
        branch_prefix: Hotfix branches are named ``<prefix><incident key>``
    """

    def __init__(
        self,
        classifier: IncidentClassifier,
        gateway: ActionGateway,
        audit_trail: Optional[AuditTrail] = None,
        fix_author: Optional[FixAuthor] = None,
        action_timeout: float = DEFAULT_ACTION_TIMEOUT_SECONDS,
        branch_prefix: str = DEFAULT_BRANCH_PREFIX
    ):
        self.classifier = classifier
        self.gateway = gateway
        self.audit_trail = audit_trail or AuditTrail()
        self.fix_author = fix_author
        self.action_timeout = action_timeout
        self.branch_prefix = branch_prefix
        self._hung: List[threading.Thread] = []

        logger.info(
            f"Initialized RemediationWorkflow "
            f"(classifier={type(classifier).__name__}, timeout={action_timeout}s)"
        )

    @property
    def hung_calls(self) -> int:
        """Gateway calls that timed out and are still running."""
        self._hung = [worker for worker in self._hung if worker.is_alive()]
        return len(self._hung)

    def close(self) -> None:
        """Report gateway calls still hung; they are abandoned, never joined."""
        hung = self.hung_calls
        if hung:
            logger.warning(f"Abandoning {hung} gateway call(s) still running after their timeout")

    def __enter__(self) -> 'RemediationWorkflow':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def branch_name(self, incident_key: str) -> str:
        return f"{self.branch_prefix}{incident_key}"

    def run(self, evidence: Sequence[Evidence]) -> IncidentRecord:
        """
        Handle one evidence batch end to end.

        Returns:
            Frozen ``IncidentRecord`` with status SUCCESS or ABORTED

        Raises:
            ClassificationFailure: If no verdict could be produced; nothing
                external has been touched and the batch should be redelivered
        """
        evidence = tuple(evidence)
        run = _RunState(
            incident_id=generate_incident_id(),
            incident_key=incident_key_for(evidence),
            evidence=evidence,
            started_at=datetime.now(timezone.utc),
        )

        with LoggingContext(incident_id=run.incident_id):
            logger.info(f"Handling {len(evidence)} message(s) as {run.incident_id} (key {run.incident_key})")
            self.audit_trail.open(
                run.incident_id,
                incident_key=run.incident_key,
                message_ids=[e.message_id for e in evidence],
            )

            run.classification = self._classify(run)
            self._transition(run, self._state_for(run.classification))

            if run.state == WorkflowState.CODE_FIX:
                self._code_fix(run, run.classification)
                if not run.aborted:
                    self._transition(run, WorkflowState.REPORTING)
            elif run.state in (WorkflowState.CONFIG, WorkflowState.UNSAFE):
                self._transition(run, WorkflowState.REPORTING)

            if run.state == WorkflowState.REPORTING:
                self._report(run, run.classification)

            return self._terminate(run)

    def run_or_raise(self, evidence: Sequence[Evidence]) -> IncidentRecord:
        """
        Like ``run`` but signal an aborted run as an exception.

        Raises:
            IncidentAbortedError: If the run terminated ABORTED
            ClassificationFailure: As for ``run``
        """
        record = self.run(evidence)
        if not record.succeeded:
            failed = record.failed_action
            raise IncidentAbortedError(
                record.incident_id,
                action=failed.value if failed else None,
                reason=record.abort_reason
            )
        return record

    # -- states -----------------------------------------------------------

    def _classify(self, run: _RunState) -> Classification:
        try:
            verdict = self.classifier.classify(run.evidence)
        except ClassificationFailure as e:
            logger.error(f"Classification failed: {e}")
            self.audit_trail.close(run.incident_id, TerminalStatus.ABORTED, reason=f"classification failed: {e}")
            raise
        except Exception as e:
            logger.error(f"Classifier raised unexpectedly: {e}", exc_info=True)
            self.audit_trail.close(run.incident_id, TerminalStatus.ABORTED, reason=f"classification failed: {e}")
            raise ClassificationFailure(f"Classifier error: {sanitize_error(e)}") from e

        if not isinstance(verdict, CLASSIFICATION_TYPES):
            reason = f"classifier returned {type(verdict).__name__}, not a classification"
            logger.error(f"Classification failed: {reason}")
            self.audit_trail.close(run.incident_id, TerminalStatus.ABORTED, reason=f"classification failed: {reason}")
            raise ClassificationFailure(reason)
        return verdict

    @staticmethod
    def _state_for(classification: Classification) -> WorkflowState:
        if isinstance(classification, NoIncident):
            return WorkflowState.TERMINATED
        if isinstance(classification, CodeFixable):
            return WorkflowState.CODE_FIX
        if isinstance(classification, ConfigurationIssue):
            return WorkflowState.CONFIG
        if isinstance(classification, Unsafe):
            return WorkflowState.UNSAFE
        raise ClassificationFailure(f"No workflow path for {type(classification).__name__}")

    def _transition(self, run: _RunState, state: WorkflowState) -> None:
        logger.debug(f"{run.incident_id}: {run.state.value} -> {state.value}")
        run.state = state

    def _code_fix(self, run: _RunState, classification: CodeFixable) -> None:
        scm = self.gateway.source_control
        branch = self.branch_name(run.incident_key)
        path = classification.file_path_hint

        outcome, _ = self._execute(
            run, ActionName.CREATE_BRANCH, {"branch": branch},
            lambda: scm.create_branch(branch),
            idempotent=True,
        )
        if not outcome.success:
            return
        run.references["branch"] = branch

        outcome, result = self._execute(
            run, ActionName.GET_FILE, {"path": path},
            lambda: scm.get_file(path, scm.default_branch),
        )
        if not outcome.success:
            return
        current = result.payload.get("content", "")

        fix_summary = self._update_file(run, classification, branch, path, current)
        if fix_summary is None:
            return

        outcome, result = self._execute(
            run, ActionName.OPEN_CHANGE_REQUEST, {"branch": branch},
            lambda: scm.open_change_request(
                branch,
                reporting.change_request_title(classification),
                reporting.change_request_description(run.incident_id, classification, path, fix_summary),
            ),
            idempotent=True,
        )
        if outcome.success and result.payload.get("url"):
            run.references["change_request_url"] = str(result.payload["url"])

    def _update_file(
        self,
        run: _RunState,
        classification: CodeFixable,
        branch: str,
        path: str,
        current: str
    ) -> Optional[str]:
        """Generate and commit the fix. Returns the fix summary, or None on failure."""
        parameters: Dict[str, Any] = {"path": path, "branch": branch}

        if self.fix_author is None:
            self._record_failure(run, ActionName.UPDATE_FILE, parameters, "no fix author configured")
            return None

        try:
            proposal = self.fix_author.propose_fix(classification, path, current, run.evidence)
        except Exception as e:
            logger.error(f"Fix generation for {path} failed: {e}")
            self._record_failure(
                run, ActionName.UPDATE_FILE, parameters, f"fix generation failed: {sanitize_error(e)}"
            )
            return None

        if proposal.new_content == current:
            self._record_failure(
                run, ActionName.UPDATE_FILE, parameters, f"proposed fix does not change {path}"
            )
            return None

        parameters["message"] = proposal.commit_message
        outcome, _ = self._execute(
            run, ActionName.UPDATE_FILE, parameters,
            lambda: self.gateway.source_control.update_file(
                path, branch, proposal.commit_message, proposal.new_content
            ),
        )
        if not outcome.success:
            return None
        return proposal.fix_summary or proposal.commit_message

    def _report(self, run: _RunState, classification: Classification) -> None:
        summary = reporting.issue_summary(classification)
        description = reporting.issue_description(run.incident_id, classification, run.references)

        outcome, result = self._execute(
            run, ActionName.CREATE_ISSUE, {"summary": summary},
            lambda: self.gateway.issue_tracker.create_issue(summary, description),
        )
        if not outcome.success:
            return
        if result.payload.get("issue_key"):
            run.references["issue_key"] = str(result.payload["issue_key"])

        subject = reporting.notification_subject(classification, run.references.get("issue_key"))
        body = reporting.notification_body(run.incident_id, classification, run.references)
        self._execute(
            run, ActionName.SEND_NOTIFICATION, {"subject": subject},
            lambda: self.gateway.notifier.send_notification(subject, body),
        )

    def _terminate(self, run: _RunState) -> IncidentRecord:
        status = TerminalStatus.ABORTED if run.aborted else TerminalStatus.SUCCESS
        if run.aborted:
            failed = run.outcomes[-1]
            run.abort_reason = f"{failed.action.value} failed: {failed.reason}"
        self._transition(run, WorkflowState.TERMINATED)

        self.audit_trail.close(
            run.incident_id,
            status,
            reason=run.abort_reason,
            classification=run.classification.kind.value if run.classification else None,
            references=dict(run.references),
        )

        record = IncidentRecord(
            incident_id=run.incident_id,
            incident_key=run.incident_key,
            evidence=run.evidence,
            classification=run.classification,
            outcomes=tuple(run.outcomes),
            state=run.state,
            status=status,
            started_at=run.started_at,
            completed_at=datetime.now(timezone.utc),
            abort_reason=run.abort_reason,
            references=dict(run.references),
        )

        if record.succeeded:
            logger.info(f"{run.incident_id} completed with {len(record.outcomes)} action(s)")
        else:
            logger.error(f"{run.incident_id} aborted: {run.abort_reason}")
        return record

    # -- action execution -------------------------------------------------

    def _execute(
        self,
        run: _RunState,
        action: ActionName,
        parameters: Dict[str, Any],
        call: Callable[[], GatewayResult],
        idempotent: bool = False
    ) -> Tuple[ActionOutcome, GatewayResult]:
        """
        Run one gateway call under the action timeout and record its outcome.

        ``idempotent`` actions treat ALREADY_EXISTS as success.

        Returns:
            (ActionOutcome, GatewayResult)
        """
        with LoggingContext(action=action.value):
            result = self._call_with_timeout(call)

            if idempotent and result.already_exists:
                logger.info(f"{action.value}: already exists, continuing")
                result = GatewayResult.ok(result.payload, warning=f"already exists: {result.reason}")

            outcome = ActionOutcome(
                action=action,
                parameters=parameters,
                success=result.success,
                payload={k: v for k, v in result.payload.items() if k not in UNRECORDED_PAYLOAD_KEYS},
                reason=result.reason,
                error_kind=result.error_kind.value if result.error_kind else None,
                warning=result.warning,
            )
            self._record(run, outcome)
            return outcome, result

    def _call_with_timeout(self, call: Callable[[], GatewayResult]) -> GatewayResult:
        """
        Run ``call`` on its own daemon thread and wait at most ``action_timeout``.

        A call that overruns is abandoned, not killed; later calls never
        queue behind it.
        """
        context = contextvars.copy_context()
        future: Future = Future()

        def target() -> None:
            future.set_running_or_notify_cancel()
            try:
                future.set_result(context.run(call))
            except Exception as e:
                future.set_exception(e)

        worker = threading.Thread(target=target, name="gateway-call", daemon=True)
        worker.start()
        try:
            result = future.result(timeout=self.action_timeout)
        except FutureTimeoutError:
            self._hung.append(worker)
            logger.warning(f"Gateway call abandoned after {self.action_timeout:g}s ({self.hung_calls} hung)")
            return GatewayResult.fail(
                ErrorKind.TRANSPORT_FAILURE, f"timed out after {self.action_timeout:g}s"
            )
        except GatewayError as e:
            return GatewayResult.from_error(e)
        except Exception as e:
            logger.error(f"Gateway raised {type(e).__name__}", exc_info=True)
            return GatewayResult.fail(
                ErrorKind.TRANSPORT_FAILURE, f"{type(e).__name__}: {sanitize_error(e)}"
            )

        if not isinstance(result, GatewayResult):
            return GatewayResult.fail(
                ErrorKind.TRANSPORT_FAILURE, f"gateway returned {type(result).__name__}"
            )
        return result

    def _record_failure(
        self,
        run: _RunState,
        action: ActionName,
        parameters: Dict[str, Any],
        reason: str
    ) -> None:
        with LoggingContext(action=action.value):
            self._record(run, ActionOutcome(action=action, parameters=parameters, success=False, reason=reason))

    def _record(self, run: _RunState, outcome: ActionOutcome) -> None:
        run.outcomes.append(outcome)
        self.audit_trail.append(run.incident_id, outcome)
        if outcome.success:
            if outcome.warning:
                logger.warning(f"{outcome.action.value} succeeded with warning: {outcome.warning}")
            else:
                logger.info(f"{outcome.action.value} succeeded")
        else:
            logger.error(f"{outcome.action.value} failed: {outcome.reason}")
