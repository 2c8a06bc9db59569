"""
stateform Plan Executor

Applies a Plan against a cloud provider with bounded concurrency. A change
starts once all its predecessors have finished; failures only affect the
changes that depend on the failed resource.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..providers.base import CloudProvider
from ..utils.retry import RetryConfig, RetryError, call_with_retry
from .config import config
from .exceptions import BlockedByFailure, Cancelled, ProviderError, StateformError, ValidationError
from .models import Action, ResourceState
from .planner import Plan, PlannedChange
from .references import Reference, contains_unknown, resolve
from .state import StateStore

logger = logging.getLogger(__name__)


class NodeStatus(Enum):
    """Final status of one planned change"""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


@dataclass
class NodeOutcome:
    """Result of applying one planned change"""
    name: str
    action: Action
    status: NodeStatus
    error: Optional[Exception] = None
    attempts: int = 0
    duration: float = 0.0
    provider_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is NodeStatus.SUCCEEDED


@dataclass
class ApplyReport:
    """Outcome of every change in a plan"""
    outcomes: Dict[str, NodeOutcome] = field(default_factory=dict)
    execution_time: float = 0.0
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return all(outcome.succeeded for outcome in self.outcomes.values())

    def with_status(self, status: NodeStatus) -> List[str]:
        return sorted(name for name, outcome in self.outcomes.items() if outcome.status is status)

    @property
    def failed(self) -> List[str]:
        return self.with_status(NodeStatus.FAILED)

    @property
    def blocked(self) -> List[str]:
        return self.with_status(NodeStatus.BLOCKED)

    def counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in NodeStatus}
        for outcome in self.outcomes.values():
            counts[outcome.status.value] += 1
        return counts

    def __getitem__(self, name: str) -> NodeOutcome:
        return self.outcomes[name]


class PlanExecutor:
    """Executes plans with a bounded worker pool"""

    def __init__(
        self,
        provider: CloudProvider,
        state_store: StateStore,
        max_workers: Optional[int] = None,
        retry_config: Optional[RetryConfig] = None,
        sleep=time.sleep
    ):
        self.provider = provider
        self.state_store = state_store
        self.max_workers = max_workers or config.execution.max_workers
        self.retry_config = retry_config or RetryConfig.from_execution_config(config.execution)
        self._sleep = sleep
        self._cancel_event = threading.Event()

        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

    def cancel(self) -> None:
        """Stop scheduling new changes; in-flight provider calls still complete"""
        if not self._cancel_event.is_set():
            logger.warning("Cancellation requested, waiting for in-flight changes")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def execute(self, plan: Plan) -> ApplyReport:
        """
        Apply every change in the plan.

        Args:
            plan: Plan produced by the Planner

        Returns:
            ApplyReport with one outcome per planned change
        """
        report = ApplyReport()
        start_time = time.time()
        unscheduled = list(plan.order)
        finished: Dict[str, NodeOutcome] = report.outcomes
        futures: Dict[Future, str] = {}

        logger.info(f"Applying plan: {len(plan.pending())} changes, {self.max_workers} workers")

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="stateform-apply") as pool:
            while True:
                if not self.cancelled:
                    self._schedule(plan, pool, unscheduled, finished, futures)

                if not futures:
                    break

                try:
                    done, _ = wait(futures, return_when=FIRST_COMPLETED)
                except KeyboardInterrupt:
                    self.cancel()
                    continue

                for future in done:
                    name = futures.pop(future)
                    finished[name] = future.result()

            if unscheduled and not self.cancelled:
                raise StateformError(
                    "Plan execution stalled with unschedulable changes",
                    error_code="EXECUTION_STALLED",
                    context={"pending": unscheduled}
                )

        for name in unscheduled:
            change = plan[name]
            finished[name] = NodeOutcome(
                name, change.action, NodeStatus.CANCELLED,
                error=Cancelled(name), provider_id=change.provider_id
            )

        report.cancelled = self.cancelled
        report.execution_time = time.time() - start_time
        report.outcomes = {name: finished[name] for name in plan.order}
        self._log_summary(report)
        return report

    def _schedule(self, plan: Plan, pool: ThreadPoolExecutor, unscheduled: List[str],
                  finished: Dict[str, NodeOutcome], futures: Dict[Future, str]) -> None:
        """Submit ready changes until the pool is full; resolve blocked ones inline"""
        progress = True
        while progress and len(futures) < self.max_workers:
            progress = False
            for name in list(unscheduled):
                change = plan[name]
                if not all(pred in finished for pred in change.predecessors if pred in plan):
                    continue

                unscheduled.remove(name)
                progress = True

                failed_dependency = next(
                    (pred for pred in sorted(change.blocking)
                     if pred in finished and not finished[pred].succeeded),
                    None
                )
                if failed_dependency:
                    logger.warning(f"Skipping '{name}': dependency '{failed_dependency}' did not succeed")
                    finished[name] = NodeOutcome(
                        name, change.action, NodeStatus.BLOCKED,
                        error=BlockedByFailure(name, failed_dependency),
                        provider_id=change.provider_id
                    )
                    break

                futures[pool.submit(self._apply_change, change)] = name
                if len(futures) >= self.max_workers:
                    break

    def _apply_change(self, change: PlannedChange) -> NodeOutcome:
        """Apply one change and persist its state; runs on a worker thread"""
        start_time = time.time()
        outcome = NodeOutcome(change.name, change.action, NodeStatus.SUCCEEDED, provider_id=change.provider_id)

        if change.action is Action.NOOP:
            return outcome

        logger.info(f"{change.action.value.capitalize()} '{change.name}' ({change.kind})")

        try:
            with self.state_store.locked(change.name):
                if change.action is Action.DELETE:
                    self._call(outcome, "delete", self.provider.delete, change.provider_id)
                    self.state_store.remove(change.name)
                    outcome.provider_id = None
                else:
                    attributes = self._resolve_inputs(change)

                    if change.action is Action.UPDATE:
                        remote = self._call(outcome, "update", self.provider.update, change.provider_id, attributes)
                        provider_id = change.provider_id
                    else:
                        if change.action is Action.REPLACE:
                            self._call(outcome, "delete", self.provider.delete, change.provider_id)
                            self.state_store.remove(change.name)
                            outcome.provider_id = None
                        provider_id, remote = self._call(
                            outcome, "create", self.provider.create, change.kind, attributes
                        )

                    self.state_store.put(ResourceState(
                        name=change.name,
                        kind=change.kind,
                        provider_id=provider_id,
                        attributes=remote,
                        config=attributes,
                        dependencies=sorted(change.node.dependencies),
                    ))
                    outcome.provider_id = provider_id

        except Exception as e:
            outcome.status = NodeStatus.FAILED
            outcome.error = e
            logger.error(f"Failed to {change.action.value} '{change.name}': {e}")

        outcome.duration = time.time() - start_time
        if outcome.succeeded:
            logger.info(f"'{change.name}' {change.action.value} complete in {outcome.duration:.2f}s")
        return outcome

    def _call(self, outcome: NodeOutcome, operation: str, func, *args) -> Any:
        """Invoke a provider operation, retrying retryable ProviderErrors"""

        def attempt():
            outcome.attempts += 1
            return func(*args)

        def on_retry(error: Exception, attempt_no: int, delay: float) -> None:
            logger.warning(
                f"Retryable error on {operation} '{outcome.name}' "
                f"(attempt {attempt_no}/{self.retry_config.max_attempts}), retrying in {delay:.2f}s: {error}"
            )

        try:
            return call_with_retry(
                attempt,
                self.retry_config,
                should_retry=lambda e: isinstance(e, ProviderError) and e.retryable,
                on_retry=on_retry,
                sleep=self._sleep,
                description=f"{operation} '{outcome.name}'"
            )
        except RetryError as e:
            raise e.last_exception from e

    def _resolve_inputs(self, change: PlannedChange) -> Dict[str, Any]:
        """Resolve references against freshly applied dependency state"""

        def lookup(ref: Reference) -> Any:
            state = self.state_store.get(ref.target)
            if state is None:
                raise StateformError(
                    f"'{change.name}' references '{ref.target}', which has no applied state",
                    error_code="MISSING_DEPENDENCY_STATE"
                )
            try:
                return state.lookup(ref.attribute)
            except KeyError:
                raise ValidationError(
                    f"Resource '{change.name}' references unknown attribute '{ref.attribute}' of '{ref.target}'",
                    resource_name=change.name,
                    error_code="UNKNOWN_ATTRIBUTE",
                    context={"reference": str(ref)}
                )

        attributes = resolve(change.node.attributes, lookup)
        if contains_unknown(attributes):
            raise StateformError(f"Unresolved values remain in '{change.name}'")
        return attributes

    def _log_summary(self, report: ApplyReport) -> None:
        counts = report.counts()
        summary = ", ".join(f"{count} {status}" for status, count in counts.items() if count)
        if report.success:
            logger.info(f"Apply complete in {report.execution_time:.2f}s: {summary or 'nothing to do'}")
        else:
            logger.error(f"Apply finished with errors in {report.execution_time:.2f}s: {summary}")


def apply(plan: Plan, provider: CloudProvider, state_store: StateStore,
          max_workers: Optional[int] = None) -> ApplyReport:
    """Apply a plan with a fresh executor"""
    return PlanExecutor(provider, state_store, max_workers=max_workers).execute(plan)
