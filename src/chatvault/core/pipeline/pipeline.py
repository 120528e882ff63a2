"""
Stage pipeline for the per-capture batch job.

A failing critical stage ends the run with status "failed" and later stages
never start; a failing non-critical stage is recorded and the run goes on.
Failures are logged here, so callers only inspect the returned result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

SUCCESS = "success"
ERROR = "error"
SKIPPED = "skipped"
FAILED = "failed"

RunFn = Callable[[Any], Awaitable[Any]]


def _elapsed_ms(started: float) -> float:
    return (perf_counter() - started) * 1000


@dataclass
class StageResult:
    name: str
    status: str
    output: Any = None
    error: Optional[str] = None
    duration_ms: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS


@dataclass
class PipelineResult:
    name: str = ""
    stages: List[StageResult] = field(default_factory=list)
    status: str = SUCCESS

    def failed(self) -> bool:
        return self.status == FAILED

    def stage(self, name: str) -> Optional[StageResult]:
        return next((s for s in self.stages if s.name == name), None)

    @property
    def errors(self) -> List[StageResult]:
        return [s for s in self.stages if s.status == ERROR]


class PipelineStage:
    def __init__(
        self,
        name: str,
        run_fn: RunFn,
        *,
        is_critical: bool = True,
        skip_if: Optional[Callable[[Any], bool]] = None,
        update_context: Optional[Callable[[Any, StageResult], Any]] = None,
    ):
        self.name = name
        self.run_fn = run_fn
        self.is_critical = is_critical
        self.skip_if = skip_if
        self.update_context_fn = update_context

    async def run(self, ctx: Any) -> StageResult:
        if self.skip_if is not None and self.skip_if(ctx):
            return StageResult(name=self.name, status=SKIPPED)

        started = perf_counter()
        try:
            output = await self.run_fn(ctx)
        except Exception as exc:  # noqa: BLE001
            return StageResult(
                name=self.name,
                status=ERROR,
                error=str(exc),
                duration_ms=_elapsed_ms(started),
                metadata={"exception": type(exc).__name__},
            )
        return StageResult(name=self.name, status=SUCCESS, output=output, duration_ms=_elapsed_ms(started))

    def apply(self, ctx: Any, result: StageResult) -> Any:
        if self.update_context_fn is None:
            return ctx
        return self.update_context_fn(ctx, result)


class Pipeline:
    def __init__(self, name: str):
        self.name = name
        self.stages: List[PipelineStage] = []

    def add_stage(self, stage: PipelineStage) -> "Pipeline":
        self.stages.append(stage)
        return self

    async def run(self, ctx: Any, *, label: str = "") -> PipelineResult:
        """`label` tags log lines, e.g. with the session being processed."""
        tag = f"{self.name}:{label}" if label else self.name
        result = PipelineResult(name=self.name)

        for stage in self.stages:
            outcome = await stage.run(ctx)
            result.stages.append(outcome)
            if outcome.status == ERROR:
                level = "ERROR" if stage.is_critical else "WARNING"
                logger.log(level, f"[{tag}] stage {stage.name} failed: {outcome.error}")
                if stage.is_critical:
                    result.status = FAILED
                    return result
            ctx = stage.apply(ctx, outcome)

        logger.debug(f"[{tag}] " + ", ".join(f"{s.name}={s.status}" for s in result.stages))
        return result
