from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class Step(Protocol):
    """A single idempotent step."""

    step_id: str

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class PipelineResult:
    state: Dict[str, Any]
    ran_steps: List[str]
    skipped_steps: List[str]
    failed_steps: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_steps


def _record_error(state: Dict[str, Any], step_id: str, e: BaseException, *, kind: str) -> None:
    state.setdefault("execution", {}).setdefault("errors", []).append(
        {
            "step": step_id,
            "kind": kind,
            "error": str(e),
        }
    )


def run_pipeline(
    *,
    state: Dict[str, Any],
    steps: Sequence[Step],
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    enabled: Optional[Callable[[Step, Dict[str, Any]], bool]] = None,
) -> PipelineResult:
    """Run steps in order.

    A step that raises is recorded in ``state["execution"]["errors"]`` and
    the next step still runs; no step failure aborts the run.
    """

    ran: List[str] = []
    skipped: List[str] = []
    failed: List[str] = []

    started = start_at is None

    for step in steps:
        if not started:
            if step.step_id == start_at:
                started = True
            else:
                continue

        state.setdefault("execution", {})["current_step"] = step.step_id

        if enabled is not None and not enabled(step, state):
            logger.info("Skipping step %s (disabled)", step.step_id)
            skipped.append(step.step_id)
        else:
            logger.info("Running step %s", step.step_id)
            try:
                state = step.run(state)
                ran.append(step.step_id)
            except PermissionError as e:
                logger.warning("Step %s: permission denied (%s); fix manually", step.step_id, e)
                _record_error(state, step.step_id, e, kind="permission")
                failed.append(step.step_id)
            except Exception as e:
                logger.exception("Step %s failed; continuing", step.step_id)
                _record_error(state, step.step_id, e, kind="error")
                failed.append(step.step_id)

        if stop_after is not None and step.step_id == stop_after:
            logger.info("Stopping after %s", stop_after)
            break

    state.setdefault("execution", {})["current_step"] = None
    return PipelineResult(state=state, ran_steps=ran, skipped_steps=skipped, failed_steps=failed)
