"""HealthTest - Generation Orchestrator

Sequences requirement extraction and test case generation as one logical
transaction, reporting progress along the way.

Pipeline (step / message / progress after):
    0 Analyzing Requirements    0 -> 10
    1 Extracting Requirements   20 -> 40
    2 Generating Test Cases     40 -> 70
    3 Building Traceability     90
    4 Preparing Reports         100

Design decisions:
- The orchestrator never touches caller state. It returns a GenerationResult;
  the caller applies it with GenerationResult.commit(), which only appends
  when the whole run completed. A failed run commits nothing, so extracted
  requirements are never kept without their test cases.
- Progress and step values only increase within a run.
- Errors are reported as-is (no wrapping); there is no retry and no
  cancellation.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypedDict, Union

from healthtest.core.config import settings
from healthtest.models.schemas import (
    ExtractedRequirement,
    GenerationProgress,
    ProcessingState,
    Requirement,
    RequirementSource,
    TestCase,
)
from healthtest.services.ai.errors import GenerationError
from healthtest.services.ai.gateway import CompletionGateway
from healthtest.services.generation.extraction import ensure_text, extract_requirements
from healthtest.services.generation.testcases import OrphanPolicy, generate_test_cases
from healthtest.services.traceability import TraceabilityMatrix, build_traceability

logger = logging.getLogger(__name__)

STEP_MESSAGES = {
    0: "Analyzing Requirements",
    1: "Extracting Requirements",
    2: "Generating Test Cases",
    3: "Building Traceability",
    4: "Preparing Reports",
}

ProgressCallback = Callable[[GenerationProgress], Union[Awaitable[None], None]]
Extractor = Callable[..., Awaitable[list[ExtractedRequirement]]]
Generator = Callable[..., Awaitable[list[TestCase]]]


@dataclass
class GenerationResult:
    """Outcome of one orchestrator run (domain object, no HTTP concepts)."""
    state: ProcessingState
    progress: GenerationProgress
    requirements: list[Requirement] = field(default_factory=list)
    test_cases: list[TestCase] = field(default_factory=list)
    progress_history: list[GenerationProgress] = field(default_factory=list)
    traceability: Optional[TraceabilityMatrix] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is ProcessingState.COMPLETE

    def commit(self, requirements: list[Requirement], test_cases: list[TestCase]) -> bool:
        """Append the new records to the caller's collections, all or nothing."""
        if not self.ok:
            return False
        requirements.extend(self.requirements)
        test_cases.extend(self.test_cases)
        return True


class GenerationState(TypedDict, total=False):
    """Mutable state passed through node methods."""
    text: str
    source: RequirementSource
    requirements: list[Requirement]
    test_cases: list[TestCase]
    traceability: TraceabilityMatrix
    progress: GenerationProgress
    progress_history: list[GenerationProgress]


class GenerationOrchestrator:
    """Multi-step generation workflow.

    Dependency injection:
    - gateway: Required (completion backend access)
    - on_progress: Optional sync or async callback receiving each progress record
    - pacing_s: Optional presentation delay between steps (default from settings)
    - extractor / generator: Optional replacements for the two AI steps (testability)
    """

    def __init__(
        self,
        gateway: CompletionGateway,
        *,
        on_progress: Optional[ProgressCallback] = None,
        pacing_s: Optional[float] = None,
        orphan_policy: Optional[OrphanPolicy] = None,
        extractor: Optional[Extractor] = None,
        generator: Optional[Generator] = None,
    ):
        self._gateway = gateway
        self._on_progress = on_progress
        self._pacing_s = settings.PACING_S if pacing_s is None else pacing_s
        self._orphan_policy = orphan_policy
        self._extractor = extractor or extract_requirements
        self._generator = generator or generate_test_cases

    async def run(self, text: str, source: RequirementSource | str) -> GenerationResult:
        """Execute the pipeline.

        Pipeline: analyze -> extract -> generate -> traceability -> reports

        Returns:
            GenerationResult in COMPLETE state with the new records, or in
            ERROR state with the failure message and nothing to commit.
        """
        state: GenerationState = {
            "text": text,
            "source": RequirementSource(source),
            "progress_history": [],
        }

        try:
            state = await self._analyze(state)
            state = await self._extract(state)
            state = await self._generate(state)
            state = await self._build_traceability(state)
            state = await self._prepare_reports(state)
        except GenerationError as e:
            logger.error("Generation failed (%s): %s", type(e).__name__, e.message)
            history = state["progress_history"]
            return GenerationResult(
                state=ProcessingState.ERROR,
                progress=history[-1] if history else GenerationProgress(step=0, message=STEP_MESSAGES[0], progress=0),
                progress_history=list(history),
                error=e.message,
                error_type=type(e).__name__,
            )

        logger.info(
            "Generation complete: %d requirement(s), %d test case(s)",
            len(state["requirements"]),
            len(state["test_cases"]),
        )
        return GenerationResult(
            state=ProcessingState.COMPLETE,
            progress=state["progress"],
            requirements=state["requirements"],
            test_cases=state["test_cases"],
            progress_history=state["progress_history"],
            traceability=state["traceability"],
        )

    # ---------------- nodes ----------------

    async def _analyze(self, state: GenerationState) -> GenerationState:
        """Node 0: validate input; blank text fails before any backend call."""
        state = await self._emit(state, 0, 0)
        ensure_text(state["text"])
        await self._pace()
        return await self._emit(state, 0, 10)

    async def _extract(self, state: GenerationState) -> GenerationState:
        """Node 1: extract requirements and tag them with the document source."""
        state = await self._emit(state, 1, 20)
        extracted = await self._extractor(self._gateway, state["text"])
        requirements = [r.with_source(state["source"]) for r in extracted]
        state = {**state, "requirements": requirements}
        return await self._emit(state, 1, 40)

    async def _generate(self, state: GenerationState) -> GenerationState:
        """Node 2: generate test cases linked to the extracted requirements."""
        await self._pace()
        state = await self._emit(state, 2, 40)
        test_cases = await self._generator(
            self._gateway,
            state["text"],
            state["source"],
            state["requirements"],
            orphan_policy=self._orphan_policy,
        )
        state = {**state, "test_cases": test_cases}
        return await self._emit(state, 2, 70)

    async def _build_traceability(self, state: GenerationState) -> GenerationState:
        """Node 3: link the new batch of requirements and test cases."""
        await self._pace()
        matrix = build_traceability(state["requirements"], state["test_cases"])
        state = {**state, "traceability": matrix}
        return await self._emit(state, 3, 90)

    async def _prepare_reports(self, state: GenerationState) -> GenerationState:
        """Node 4: placeholder for report preparation."""
        await self._pace()
        return await self._emit(state, 4, 100)

    # ---------------- helpers ----------------

    async def _emit(self, state: GenerationState, step: int, progress: int) -> GenerationState:
        record = GenerationProgress(step=step, message=STEP_MESSAGES[step], progress=progress)
        previous = state.get("progress")
        if previous is not None and (record.step < previous.step or record.progress < previous.progress):
            raise RuntimeError(f"Progress went backwards: {previous} -> {record}")

        if self._on_progress is not None:
            outcome: Any = self._on_progress(record)
            if inspect.isawaitable(outcome):
                await outcome

        # Shared across state copies; run() reads it on failure
        state["progress_history"].append(record)
        return {**state, "progress": record}

    async def _pace(self) -> None:
        if self._pacing_s > 0:
            await asyncio.sleep(self._pacing_s)
