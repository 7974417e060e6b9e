from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional, Sequence

from .errors import BuildError, MissingOutputError, MissingSourceError
from .rules import DEFAULT_GOAL, BuildGraph, Rule

logger = logging.getLogger(__name__)

Status = Literal["built", "up-to-date", "would-build", "failed", "skipped"]


@dataclass
class TargetResult:
    target: str
    status: Status
    error: str | None = None
    command: str | None = None


class BuildExecutor:
    """
    Brings requested artifacts up to date by running the steps of stale rules.

    A rule is stale when its target is missing, when a prerequisite is newer,
    or when a prerequisite was rebuilt earlier in the same run. Steps run on a
    pool of `jobs` threads; a rule is only scheduled once every prerequisite
    step has exited. The first failure stops scheduling and the rules that
    never ran are reported as skipped.
    """

    def __init__(
        self,
        graph: BuildGraph,
        directory: Path,
        *,
        jobs: int = 1,
        dry_run: bool = False,
        always_make: bool = False,
    ):
        if jobs < 1:
            raise ValueError("jobs must be at least 1")
        self.graph = graph
        self.directory = Path(directory)
        self.jobs = jobs
        self.dry_run = dry_run
        self.always_make = always_make

    def _mtime(self, name: str) -> Optional[int]:
        try:
            return (self.directory / name).stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def is_stale(self, rule: Rule, rebuilt: Iterable[str] = ()) -> bool:
        target_mtime = self._mtime(rule.target)
        if target_mtime is None:
            return True
        rebuilt = set(rebuilt)
        for name in rule.prerequisites:
            if name in rebuilt:
                return True
            prerequisite_mtime = self._mtime(name)
            if prerequisite_mtime is not None and prerequisite_mtime > target_mtime:
                return True
        return False

    def check_sources(self, targets: Sequence[str]) -> None:
        """Raise MissingSourceError for the first absent source input `targets` need."""
        for source in self.graph.sources_for(targets):
            path = self.directory / source.name
            if not path.exists():
                logger.error("Source input %s is missing", path)
                raise MissingSourceError(path)

    def _produce(self, rule: Rule) -> None:
        rule.step.run(self.directory, rule.target)
        if not (self.directory / rule.target).exists():
            raise MissingOutputError(rule.target)

    def run(self, targets: Sequence[str] = (DEFAULT_GOAL,)) -> List[TargetResult]:
        """
        Build `targets` and return one result per rule in dependency order.

        Raises UnknownTargetError or MissingSourceError before any step runs.
        """
        rules = self.graph.closure(targets)
        self.check_sources(targets)

        pending: Dict[str, Rule] = {rule.target: rule for rule in rules}
        in_flight: Dict[Future, Rule] = {}
        results: Dict[str, TargetResult] = {}
        rebuilt: set[str] = set()
        failed = False

        with ThreadPoolExecutor(max_workers=self.jobs) as pool:
            while True:
                if not failed:
                    self._schedule(pool, pending, in_flight, results, rebuilt)
                if not in_flight:
                    break
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    rule = in_flight.pop(future)
                    result = results[rule.target]
                    try:
                        future.result()
                    except BuildError as exc:
                        failed = True
                        logger.error("Failed to build %s: %s", rule.target, exc)
                        result.status = "failed"
                        result.error = str(exc)
                    else:
                        rebuilt.add(rule.target)
                        logger.info("Built %s", rule.target)
                        result.status = "built"

        for target in pending:
            logger.warning("Skipping %s after earlier failure", target)
            results[target] = TargetResult(target, "skipped")
        return [results[rule.target] for rule in rules]

    def _schedule(
        self,
        pool: ThreadPoolExecutor,
        pending: Dict[str, Rule],
        in_flight: Dict[Future, Rule],
        results: Dict[str, TargetResult],
        rebuilt: set[str],
    ) -> None:
        # pending keeps dependency order, so a rule settled here can unblock later ones in the same pass
        for target, rule in list(pending.items()):
            if len(in_flight) >= self.jobs:
                return
            running = {r.target for r in in_flight.values()}
            if any(p in pending or p in running for p in rule.prerequisites):
                continue
            del pending[target]

            if not self.always_make and not self.is_stale(rule, rebuilt):
                logger.debug("%s is up to date", target)
                results[target] = TargetResult(target, "up-to-date")
                continue

            command = rule.step.describe(target)
            if self.dry_run:
                rebuilt.add(target)
                results[target] = TargetResult(target, "would-build", command=command)
                continue

            logger.info("Building %s: %s", target, command)
            future = pool.submit(self._produce, rule)
            in_flight[future] = rule
            results[target] = TargetResult(target, "skipped", command=command)
