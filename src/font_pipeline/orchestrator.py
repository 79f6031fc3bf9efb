"""Per-slot conversion jobs: validate, detect, resolve, assemble, render."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from .assembler import assemble_collection
from .detection import FontDetector, is_generic_family
from .errors import ErrorKind, PipelineError, ValidationError
from .logging import ConversionLogEntry, RunLogger, StageTimings
from .models import (
    ConversionConfig,
    FontCollection,
    FontKey,
    FontOrigin,
    FontRequirement,
    normalize_family,
)
from .remote import RemoteFontResolver
from .render import Renderer, validate_output
from .store import CustomFontStore
from .utils import generate_run_id

logger = logging.getLogger(__name__)


class JobStage(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    DETECTING_FONTS = "detecting_fonts"
    RESOLVING_FONTS = "resolving_fonts"
    RENDERING = "rendering"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SUPERSEDED = "superseded"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STAGES


TERMINAL_STAGES = frozenset({JobStage.SUCCEEDED, JobStage.FAILED, JobStage.SUPERSEDED})

_TRANSITIONS: dict[JobStage, frozenset[JobStage]] = {
    JobStage.IDLE: frozenset({JobStage.VALIDATING}),
    JobStage.VALIDATING: frozenset({JobStage.DETECTING_FONTS}),
    JobStage.DETECTING_FONTS: frozenset({JobStage.RESOLVING_FONTS}),
    JobStage.RESOLVING_FONTS: frozenset({JobStage.RENDERING}),
    JobStage.RENDERING: frozenset({JobStage.SUCCEEDED}),
}

STAGE_PROGRESS: dict[JobStage, float] = {
    JobStage.IDLE: 0.0,
    JobStage.VALIDATING: 0.05,
    JobStage.DETECTING_FONTS: 0.15,
    JobStage.RESOLVING_FONTS: 0.3,
    JobStage.RENDERING: 0.7,
    JobStage.SUCCEEDED: 1.0,
    JobStage.FAILED: 1.0,
    JobStage.SUPERSEDED: 1.0,
}

# Unexpected exceptions are reported with the kind of the stage they escaped from.
_STAGE_ERROR_KIND: dict[JobStage, ErrorKind] = {
    JobStage.IDLE: ErrorKind.VALIDATION_ERROR,
    JobStage.VALIDATING: ErrorKind.VALIDATION_ERROR,
    JobStage.DETECTING_FONTS: ErrorKind.VALIDATION_ERROR,
    JobStage.RESOLVING_FONTS: ErrorKind.FONT_RESOLUTION_FAILED,
    JobStage.RENDERING: ErrorKind.RENDER_ERROR,
}


class InvalidTransitionError(RuntimeError):
    """Raised when a job is moved to a stage it cannot reach."""


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    job_id: str
    stage: JobStage
    progress: float


ProgressListener = Callable[[ProgressEvent], None]


@dataclass(frozen=True, slots=True)
class FontProgress:
    """One font settled during the resolving stage: ``current`` of ``total``."""

    job_id: str
    current: int
    total: int
    family: str


FontProgressListener = Callable[[FontProgress], None]


@dataclass(slots=True)
class ConversionJob:
    job_id: str
    slot: str
    document_source: str
    config: ConversionConfig
    stage: JobStage = JobStage.IDLE
    result: bytes | None = None
    error: PipelineError | None = None
    requirements: tuple[FontRequirement, ...] = ()
    font_failures: dict[str, PipelineError] = field(default_factory=dict)
    fonts_embedded: int = 0
    timings: StageTimings = field(default_factory=StageTimings)
    created_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    listener: ProgressListener | None = field(default=None, repr=False)
    font_listener: FontProgressListener | None = field(default=None, repr=False)

    @property
    def terminal(self) -> bool:
        return self.stage.terminal

    @property
    def progress(self) -> float:
        return STAGE_PROGRESS[self.stage]

    def advance(self, stage: JobStage) -> ProgressEvent:
        allowed = _TRANSITIONS.get(self.stage, frozenset())
        if not self.terminal and stage in (JobStage.FAILED, JobStage.SUPERSEDED):
            allowed = allowed | {stage}
        if stage not in allowed:
            raise InvalidTransitionError(f"Job {self.job_id} cannot move from {self.stage.value} to {stage.value}")
        self.stage = stage
        if stage.terminal:
            self.finished_at = time.time()
        event = ProgressEvent(job_id=self.job_id, stage=stage, progress=STAGE_PROGRESS[stage])
        if self.listener is not None:
            try:
                self.listener(event)
            except Exception:
                logger.exception("Progress listener for job %s failed", self.job_id)
        return event

    def report_font(self, current: int, total: int, family: str) -> None:
        if self.font_listener is None or self.terminal:
            return
        try:
            self.font_listener(FontProgress(job_id=self.job_id, current=current, total=total, family=family))
        except Exception:
            logger.exception("Font progress listener for job %s failed", self.job_id)

    def to_payload(self) -> dict[str, object]:
        return {
            "job_id": self.job_id,
            "slot": self.slot,
            "stage": self.stage.value,
            "progress": self.progress,
            "error": self.error.to_dict() if self.error is not None else None,
            "requirements": [
                {"family": item.family, "weight": item.weight, "style": item.style, "origin": item.origin}
                for item in self.requirements
            ],
            "font_failures": {label: error.to_dict() for label, error in self.font_failures.items()},
            "fonts_embedded": self.fonts_embedded,
            "size_bytes": len(self.result) if self.result is not None else 0,
            "created_at": self.created_at,
            "finished_at": self.finished_at,
        }


class ConversionOrchestrator:
    """Runs conversion jobs, keeping at most one visible job per slot."""

    def __init__(
        self,
        detector: FontDetector,
        resolver: RemoteFontResolver,
        renderer: Renderer,
        *,
        custom_store: CustomFontStore | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        self._detector = detector
        self._resolver = resolver
        self._renderer = renderer
        self._store = custom_store
        self._run_logger = run_logger
        self._slots: dict[str, ConversionJob] = {}

    def get(self, slot: str = "default") -> ConversionJob | None:
        return self._slots.get(slot)

    def reset(self, slot: str = "default") -> ConversionJob | None:
        return self._slots.pop(slot, None)

    def slots(self) -> dict[str, ConversionJob]:
        return dict(self._slots)

    async def convert(
        self,
        document_source: str,
        config: ConversionConfig | None = None,
        *,
        slot: str = "default",
        job_id: str | None = None,
        listener: ProgressListener | None = None,
        font_listener: FontProgressListener | None = None,
    ) -> ConversionJob:
        """Run one job to a terminal stage and return it.

        Failures never propagate: they are recorded on the returned job.
        """

        job = ConversionJob(
            job_id=job_id or generate_run_id("job"),
            slot=slot,
            document_source=document_source,
            config=config or ConversionConfig(),
            listener=listener,
            font_listener=font_listener,
        )
        previous = self._slots.get(slot)
        if previous is not None and not previous.terminal:
            previous.advance(JobStage.SUPERSEDED)
            logger.info("Job %s superseded by %s on slot %s", previous.job_id, job.job_id, slot)
            self._record(previous)
        self._slots[slot] = job

        try:
            await self._run(job)
        except Exception as exc:
            logger.exception("Job %s raised during %s", job.job_id, job.stage.value)
            kind = _STAGE_ERROR_KIND.get(job.stage, ErrorKind.RENDER_ERROR)
            self._fail(job, PipelineError(kind, str(exc) or exc.__class__.__name__))
        return job

    async def _run(self, job: ConversionJob) -> None:
        if not self._enter(job, JobStage.VALIDATING):
            return
        started = time.perf_counter()
        try:
            self._validate(job)
        except PipelineError as exc:
            self._fail(job, exc)
            return
        job.timings.validate_ms = _elapsed_ms(started)

        if not self._enter(job, JobStage.DETECTING_FONTS):
            return
        started = time.perf_counter()
        try:
            detection = await self._detector.detect(job.document_source, default_family=job.config.font_family)
            primary = await self._primary_requirement(job.config)
        except PipelineError as exc:
            self._fail(job, exc)
            return
        requirements = list(detection.requirements)
        if all(item.key != primary.key for item in requirements):
            requirements.insert(0, primary)
        job.requirements = tuple(requirements)
        job.timings.detect_ms = _elapsed_ms(started)

        if not self._enter(job, JobStage.RESOLVING_FONTS):
            return
        started = time.perf_counter()
        resolved, failures = await self._resolve(job)
        if job.stage is JobStage.SUPERSEDED:
            return
        try:
            collection, missing = assemble_collection(job.requirements, resolved, primary, failures)
        except PipelineError as exc:
            self._fail(job, exc)
            return
        for requirement in missing:
            job.font_failures.setdefault(requirement.label(), failures[requirement.key])
        job.fonts_embedded = len(collection)
        job.timings.resolve_ms = _elapsed_ms(started)

        if not self._enter(job, JobStage.RENDERING):
            return
        started = time.perf_counter()
        collection.freeze()
        try:
            output = validate_output(await self._render(job, collection))
        except PipelineError as exc:
            if job.stage is not JobStage.SUPERSEDED:
                self._fail(job, exc)
            return
        job.timings.render_ms = _elapsed_ms(started)
        if job.stage is JobStage.SUPERSEDED:
            logger.debug("Discarding result of superseded job %s", job.job_id)
            return
        job.result = output
        job.advance(JobStage.SUCCEEDED)
        logger.info("Job %s succeeded (%d bytes, %d fonts)", job.job_id, len(output), job.fonts_embedded)
        self._record(job)

    def _enter(self, job: ConversionJob, stage: JobStage) -> bool:
        if job.stage is JobStage.SUPERSEDED:
            return False
        job.advance(stage)
        logger.info("Job %s entered %s", job.job_id, stage.value)
        return True

    def _validate(self, job: ConversionJob) -> None:
        if not isinstance(job.document_source, str) or not job.document_source.strip():
            raise ValidationError("Document source is empty")
        job.config.validate()

    async def _primary_requirement(self, config: ConversionConfig) -> FontRequirement:
        family = normalize_family(config.font_family)
        custom = await self._store.families() if self._store is not None else {}
        origin: FontOrigin = "remote"
        if family.casefold() in custom:
            origin, family = "custom", custom[family.casefold()]
        elif is_generic_family(family) or self._detector.is_system_font(family):
            origin = "system"
        return FontRequirement(family=family, weight=400, style="normal", origin=origin)

    async def _resolve(self, job: ConversionJob) -> tuple[dict[FontKey, bytes], dict[FontKey, PipelineError]]:
        resolved: dict[FontKey, bytes] = {}
        failures: dict[FontKey, PipelineError] = {}

        custom = [item for item in job.requirements if item.origin == "custom"]
        remote = [item for item in job.requirements if item.origin == "remote"]
        total = len(custom) + len(remote)
        settled = 0

        def report(requirement: FontRequirement) -> None:
            nonlocal settled
            settled += 1
            job.report_font(settled, total, requirement.family)

        installed = await self._store.lookup() if custom and self._store is not None else {}
        for requirement in custom:
            data = installed.get(requirement.key)
            if data is None:
                failures[requirement.key] = PipelineError(
                    ErrorKind.NOT_FOUND,
                    f"Custom font {requirement.label()} is not installed",
                )
            else:
                resolved[requirement.key] = data
            report(requirement)

        def on_retry(requirement: FontRequirement, attempt: int, delay_ms: int, error: BaseException) -> None:
            logger.info(
                "Job %s: retrying %s after attempt %d in %dms (%s)",
                job.job_id,
                requirement.label(),
                attempt,
                delay_ms,
                error,
            )

        resolutions = await self._resolver.resolve_many(
            remote,
            on_retry=on_retry,
            on_settled=lambda resolution: report(resolution.requirement),
        )
        for resolution in resolutions:
            if resolution.data is not None:
                resolved[resolution.requirement.key] = resolution.data
            elif resolution.error is not None:
                failures[resolution.requirement.key] = resolution.error
        return resolved, failures

    async def _render(self, job: ConversionJob, collection: FontCollection) -> bytes:
        return await self._renderer.render(job.document_source, job.config, collection)

    def _fail(self, job: ConversionJob, error: PipelineError) -> None:
        if job.terminal:
            return
        job.error = error
        job.advance(JobStage.FAILED)
        logger.warning("Job %s failed with %s: %s", job.job_id, error.kind.value, error.message)
        self._record(job)

    def _record(self, job: ConversionJob) -> None:
        if self._run_logger is None:
            return
        self._run_logger.append(
            ConversionLogEntry(
                job_id=job.job_id,
                slot=job.slot,
                status=job.stage.value,
                error_kind=job.error.kind.value if job.error is not None else None,
                error_message=job.error.message if job.error is not None else None,
                timings=job.timings,
                fonts_required=len(job.requirements),
                fonts_embedded=job.fonts_embedded,
                fonts_missing=sorted(job.font_failures),
                size_bytes=len(job.result) if job.result is not None else 0,
            )
        )


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


__all__ = [
    "ConversionJob",
    "ConversionOrchestrator",
    "FontProgress",
    "FontProgressListener",
    "InvalidTransitionError",
    "JobStage",
    "ProgressEvent",
    "ProgressListener",
    "STAGE_PROGRESS",
    "TERMINAL_STAGES",
]
