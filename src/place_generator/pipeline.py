"""Multi-pass driver: runs every active component over the dataset, then exports.

Each component exposes one handler per pass it needs. The number of passes
is the largest of those counts: two for brands and roads, three once
boundary regions are involved.
"""

import logging
import resource
import sys
import time
from contextlib import ExitStack
from typing import Callable, Optional

from .config import GeneratorConfig
from .core.boundary import BoundaryResolver
from .core.extractor import TagPointExtractor
from .core.roads import RoadSampler
from .core.source import ElementCounter, ElementSource, OsmiumElementSource
from .exporters.binary import BinaryPointSink
from .exporters.sinks import BoundaryGatedSink, PointSink, TeeSink
from .models import MapElement

logger = logging.getLogger(__name__)

Handler = Callable[[MapElement], None]


def log_progress(done: int, total: Optional[int]) -> None:
    if total:
        logger.info("Processed %d/%d nodes (%.1f%%)", done, total, 100.0 * done / total)
    else:
        logger.info("Processed %d nodes", done)


def log_memory(stage: str) -> None:
    """Log the peak resident set size of this process so far."""
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Kilobytes on Linux, bytes on macOS.
    if sys.platform == "darwin":
        peak //= 1024
    logger.info("Peak memory %s: %.1f MiB", stage, peak / 1024)


def plan_passes(handler_lists: list[list[Handler]]) -> list[list[Handler]]:
    """Regroup per-component handler lists into per-pass handler lists."""
    num_passes = max((len(h) for h in handler_lists), default=0)
    return [
        [handlers[i] for handlers in handler_lists if i < len(handlers)]
        for i in range(num_passes)
    ]


def run_passes(
    source: ElementSource,
    passes: list[list[Handler]],
    progress: Optional[Callable[[int, Optional[int]], None]] = log_progress,
) -> None:
    log_memory("at start")
    for pass_idx, handlers in enumerate(passes, start=1):
        logger.info("Starting pass %d of %d", pass_idx, len(passes))
        t0 = time.perf_counter()

        def dispatch(element: MapElement) -> None:
            for handler in handlers:
                handler(element)

        source.for_each(dispatch, progress=progress)
        logger.info("Finished pass %d in %.1fs", pass_idx, time.perf_counter() - t0)
        log_memory(f"after pass {pass_idx}")


class PlaceGenerator:
    """Wires the extractors, road sampler and boundary resolver for one run."""

    def __init__(self, config: GeneratorConfig, source: Optional[ElementSource] = None):
        self.config = config
        self.source = source or OsmiumElementSource(
            config.dataset,
            expected_nodes=config.expected_nodes,
            progress_every=config.progress_every,
        )
        self.counter = ElementCounter()
        self.extractors = [
            TagPointExtractor(b.name, b.key, b.value) for b in config.brands
        ]
        self.roads = None
        if config.roads.enabled:
            self.roads = RoadSampler(
                keep_probability=config.roads.keep_probability,
                sample_count=config.roads.sample_count,
                seed=config.seed,
            )
        self.boundaries = None
        if config.regions:
            self.boundaries = BoundaryResolver(config.relation_ids())

    def components(self) -> list:
        comps = list(self.extractors)
        if self.roads is not None:
            comps.append(self.roads)
        if self.boundaries is not None:
            comps.append(self.boundaries)
        return comps

    def passes(self) -> list[list[Handler]]:
        handler_lists = [c.pass_handlers() for c in self.components()]
        passes = plan_passes(handler_lists)
        if passes:
            passes[0].append(self.counter.process)
        return passes

    def extract(self, progress=log_progress) -> None:
        """Run all passes, then index and sample the road network."""
        run_passes(self.source, self.passes(), progress=progress)
        self.counter.log_summary()
        for extractor in self.extractors:
            logger.info(
                "Number of %s: %d nodes + %d ways",
                extractor.name, extractor.node_matches, sum(extractor.state.pending.values()),
            )
        if self.roads is not None:
            self.roads.build_index()
            self.roads.sample()
            log_memory("after sampling")

    def _open_sink(self, stack: ExitStack, filename: str) -> PointSink:
        path = self.config.output_path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        sink: PointSink = BinaryPointSink(path)
        if self.config.debug_text:
            text = stack.enter_context(open(path.with_suffix(path.suffix + ".txt"), "w"))
            sink = TeeSink(sink, text)
        return stack.enter_context(sink)

    def export(self) -> dict[str, int]:
        """Write every configured point file. Returns points written per file."""
        written = {}
        with ExitStack() as stack:
            for extractor, brand in zip(self.extractors, self.config.brands):
                sink = self._open_sink(stack, brand.output)
                written[brand.output] = extractor.export(sink)

            if self.roads is not None:
                sink = self._open_sink(stack, self.config.roads.output)
                written[self.config.roads.output] = self.roads.export(sink)

            for region in self.config.regions:
                filters = [self.boundaries.filter(rid) for rid in region.relation_ids]
                gated = BoundaryGatedSink(self._open_sink(stack, region.output), filters)
                self.roads.export(gated)
                written[region.output] = gated.accepted
                logger.info(
                    "Region %s kept %d road points, dropped %d",
                    region.name, gated.accepted, gated.dropped,
                )
        for filename, count in written.items():
            logger.info("Wrote %d points to %s", count, self.config.output_path(filename))
        return written

    def run(self) -> dict[str, int]:
        self.extract()
        return self.export()
