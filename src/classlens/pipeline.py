"""Orchestrator: extract records in parallel, merge, then build the graphs."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field

from classlens.bytecode import extract_class, validate
from classlens.components import ComponentDetector, DEFAULT_CATALOG
from classlens.config import AnalysisConfig
from classlens.dataflow import DataFlowAnalyzer
from classlens.dependencies import DependencyGraphBuilder, GraphMetrics
from classlens.endpoints import Endpoint, EndpointDetector
from classlens.errors import AnalysisError, ParsingError, PipelineTimeoutError
from classlens.methods import EnrichedMethod, MethodExtractionService
from classlens.model import (
    BeanDefinition,
    CallGraph,
    ClassMetadata,
    ClassRecord,
    DataFlowResult,
    DependencyGraph,
    DetectedComponent,
    Diagnostic,
)

logger = logging.getLogger(__name__)

_Outcome = ClassMetadata | Diagnostic


def _process_record(record: ClassRecord, include_private_methods: bool) -> _Outcome:
    """Validate and extract one record.  Runs inside a worker process."""
    if not validate(record.data):
        return Diagnostic(
            record.name, "parsing", "not a class record (short header or bad magic)"
        )
    try:
        return extract_class(record.data, include_private_methods)
    except ParsingError as e:
        return Diagnostic(record.name, "parsing", str(e))
    except AnalysisError as e:
        return Diagnostic(record.name, "analysis", str(e))
    except Exception as e:
        logger.debug("Unexpected failure on %s", record.name, exc_info=True)
        return Diagnostic(record.name, "analysis", f"{type(e).__name__}: {e}")


def _as_records(records: Iterable[ClassRecord | bytes]) -> list[ClassRecord]:
    return [
        r if isinstance(r, ClassRecord) else ClassRecord(f"record[{i}]", bytes(r))
        for i, r in enumerate(records)
    ]


def _extract_inline(
    records: list[ClassRecord], config: AnalysisConfig
) -> list[_Outcome]:
    deadline = None if config.timeout is None else time.monotonic() + config.timeout
    outcomes = []
    for record in records:
        if deadline is not None and time.monotonic() > deadline:
            raise PipelineTimeoutError(
                f"extraction exceeded {config.timeout}s after "
                f"{len(outcomes)} of {len(records)} records"
            )
        outcomes.append(_process_record(record, config.include_private_methods))
    return outcomes


def _extract_parallel(
    records: list[ClassRecord], config: AnalysisConfig
) -> list[_Outcome]:
    outcomes: list[_Outcome | None] = [None] * len(records)
    with ProcessPoolExecutor(max_workers=config.workers) as executor:
        futures = {
            executor.submit(_process_record, record, config.include_private_methods): i
            for i, record in enumerate(records)
        }
        try:
            for future in as_completed(futures, timeout=config.timeout):
                i = futures[future]
                try:
                    outcomes[i] = future.result()
                except Exception as e:
                    outcomes[i] = Diagnostic(records[i].name, "analysis", str(e))
        except TimeoutError:
            executor.shutdown(wait=False, cancel_futures=True)
            done = sum(1 for o in outcomes if o is not None)
            raise PipelineTimeoutError(
                f"extraction exceeded {config.timeout}s after "
                f"{done} of {len(records)} records"
            ) from None
    return outcomes  # type: ignore[return-value]


def _merge(
    records: list[ClassRecord], outcomes: list[_Outcome]
) -> tuple[list[ClassMetadata], list[Diagnostic]]:
    """Combine outcomes in input order; the first record of a duplicated name wins."""
    classes: list[ClassMetadata] = []
    diagnostics: list[Diagnostic] = []
    seen: dict[str, str] = {}
    for record, outcome in zip(records, outcomes):
        if isinstance(outcome, Diagnostic):
            diagnostics.append(outcome)
            continue
        name = outcome.fully_qualified_name
        if name in seen:
            diagnostics.append(
                Diagnostic(record.name, "duplicate", f"{name} already read from {seen[name]}")
            )
            continue
        seen[name] = record.name
        classes.append(outcome)
    return classes, diagnostics


@dataclass(frozen=True)
class AnalysisResult:
    """Everything derived from one batch of class records."""

    config: AnalysisConfig
    classes: tuple[ClassMetadata, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()
    dependency_graph: DependencyGraph = field(default_factory=DependencyGraph)
    package_graph: dict[str, tuple[str, ...]] = field(default_factory=dict)
    metrics: GraphMetrics | None = None
    call_graph: CallGraph = field(default_factory=CallGraph)
    entry_points: tuple[EnrichedMethod, ...] = ()
    components: tuple[DetectedComponent, ...] = ()
    entities: tuple[DetectedComponent, ...] = ()
    repositories: tuple[DetectedComponent, ...] = ()
    configurations: tuple[DetectedComponent, ...] = ()
    beans: tuple[BeanDefinition, ...] = ()
    component_dependencies: dict[str, list[str]] = field(default_factory=dict)
    endpoints: tuple[Endpoint, ...] = ()

    def analyze_flow(self, max_depth: int | None = None) -> DataFlowResult:
        """Run the data-flow analysis over the merged classes on demand."""
        analyzer = DataFlowAnalyzer()
        return analyzer.analyze_flow(
            self.classes,
            max_depth=self.config.max_call_depth if max_depth is None else max_depth,
            max_chains=self.config.max_chains,
        )


def analyze_records(
    records: Iterable[ClassRecord | bytes],
    config: AnalysisConfig | None = None,
) -> AnalysisResult:
    """Run the full pipeline over *records* and return the merged result.

    Extraction runs per record, in worker processes when ``config.workers``
    is greater than one.  Nothing is published until every record has been
    processed; on timeout :class:`PipelineTimeoutError` is raised instead.
    Records that cannot be decoded are reported as diagnostics.
    """
    config = config or AnalysisConfig()
    records = _as_records(records)
    logger.info("Extracting %d record(s) with %d worker(s)", len(records), config.workers)

    if config.workers > 1 and len(records) > 1:
        outcomes = _extract_parallel(records, config)
    else:
        outcomes = _extract_inline(records, config)

    classes, diagnostics = _merge(records, outcomes)
    for d in diagnostics:
        logger.warning("Skipped %s (%s): %s", d.record, d.kind, d.message)

    builder = DependencyGraphBuilder(config.exclude_prefixes)
    methods = MethodExtractionService()
    detector = ComponentDetector(DEFAULT_CATALOG.with_extra(config.extra_annotations))

    graph = builder.build(classes)
    result = AnalysisResult(
        config=config,
        classes=tuple(classes),
        diagnostics=tuple(diagnostics),
        dependency_graph=graph,
        package_graph=builder.build_package_graph(classes, graph),
        metrics=builder.calculate_metrics(graph),
        call_graph=methods.build_call_graph(classes),
        entry_points=tuple(methods.find_entry_points(classes)),
        components=tuple(detector.detect_components(classes)),
        entities=tuple(detector.detect_entities(classes)),
        repositories=tuple(detector.detect_repositories(classes)),
        configurations=tuple(detector.detect_configurations(classes)),
        beans=tuple(detector.detect_beans(classes)),
        component_dependencies=detector.detect_dependencies(classes),
        endpoints=tuple(EndpointDetector(methods).detect_endpoints(classes)),
    )
    logger.info(
        "Analyzed %d class(es), %d diagnostic(s)", len(classes), len(diagnostics)
    )
    return result
