"""Declarative artifact graph for the register-table build."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

from .config import BuildConfig
from .errors import GraphCycleError, UnknownTargetError
from .steps import CommandRunner, ExtractStep, FetchStep, SliceStep, Step, run_command

DEFAULT_GOAL = "all"


@dataclass(frozen=True)
class SourceInput:
    """A file the build consumes but never produces."""

    name: str


@dataclass
class Rule:
    target: str
    prerequisites: Tuple[str, ...]
    step: Step


@dataclass
class BuildGraph:
    """
    Rules, source inputs and phony groups keyed by name.

    Construction rejects unknown prerequisites and dependency cycles.
    """

    rules: Dict[str, Rule]
    sources: Dict[str, SourceInput] = field(default_factory=dict)
    phony: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for rule in self.rules.values():
            for name in rule.prerequisites:
                if name not in self.rules and name not in self.sources:
                    raise UnknownTargetError(name)
        self._check_acyclic()

    def _check_acyclic(self) -> None:
        visiting: List[str] = []
        done: set[str] = set()

        def visit(name: str) -> None:
            if name in done or name not in self.rules:
                return
            if name in visiting:
                raise GraphCycleError(visiting[visiting.index(name):] + [name])
            visiting.append(name)
            for prerequisite in self.rules[name].prerequisites:
                visit(prerequisite)
            visiting.pop()
            done.add(name)

        for name in self.rules:
            visit(name)

    def names(self) -> List[str]:
        return [*self.phony, *self.rules]

    def resolve(self, names: Iterable[str]) -> List[str]:
        """Expand phony goals into concrete names, keeping first-seen order."""
        resolved: List[str] = []
        for name in names:
            if name in self.phony:
                expanded = self.resolve(self.phony[name])
            elif name in self.rules or name in self.sources:
                expanded = [name]
            else:
                raise UnknownTargetError(name)
            for item in expanded:
                if item not in resolved:
                    resolved.append(item)
        return resolved

    def closure(self, names: Iterable[str]) -> List[Rule]:
        """
        Return every rule needed for `names`, prerequisites before dependents.

        Prerequisites are visited in their declared order, so a sequential run
        follows the order rules list them.
        """
        ordered: List[Rule] = []
        seen: set[str] = set()

        def visit(name: str) -> None:
            if name in seen:
                return
            seen.add(name)
            rule = self.rules.get(name)
            if rule is None:
                return
            for prerequisite in rule.prerequisites:
                visit(prerequisite)
            ordered.append(rule)

        for name in self.resolve(names):
            visit(name)
        return ordered

    def sources_for(self, names: Iterable[str]) -> List[SourceInput]:
        resolved = self.resolve(names)
        needed: List[SourceInput] = [self.sources[n] for n in resolved if n in self.sources]
        for rule in self.closure(resolved):
            for prerequisite in rule.prerequisites:
                source = self.sources.get(prerequisite)
                if source is not None and source not in needed:
                    needed.append(source)
        return needed


def build_graph(config: BuildConfig, runner: CommandRunner = run_command) -> BuildGraph:
    """Declare the appendix recipe described by `config`."""
    rules: Dict[str, Rule] = {}

    rules[config.tabula_jar] = Rule(
        target=config.tabula_jar,
        prerequisites=(),
        step=FetchStep(url=config.tabula_url, timeout=config.http_timeout),
    )
    rules[config.appendix_pdf] = Rule(
        target=config.appendix_pdf,
        prerequisites=(config.source_pdf,),
        step=SliceStep(
            source=config.source_pdf,
            first_page=config.first_page,
            last_page=config.last_page,
            qpdf=config.qpdf,
            runner=runner,
        ),
    )
    table_targets: Sequence[str] = config.table_targets()
    for target, page in zip(table_targets, config.tables.values()):
        rules[target] = Rule(
            target=target,
            prerequisites=(config.tabula_jar, config.appendix_pdf),
            step=ExtractStep(
                jar=config.tabula_jar,
                pdf=config.appendix_pdf,
                page=page,
                mode=config.detection_mode,
                java=config.java,
                runner=runner,
            ),
        )

    return BuildGraph(
        rules=rules,
        sources={config.source_pdf: SourceInput(config.source_pdf)},
        phony={DEFAULT_GOAL: tuple(table_targets)},
    )
