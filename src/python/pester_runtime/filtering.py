"""
Filter evaluator.

Marks every block and test of a discovered tree with Include, Exclude,
Explicit and ShouldRun before execution starts:

- ExcludeTag and ExcludeLine matches exclude; exclusion is inherited by every
  descendant and always wins.
- A Line match includes the entity and makes it explicit, which lets it run
  even when it or an ancestor is skipped.
- Otherwise a FullName or Tag match includes it, and with no include filters
  at all everything is included.
- Inclusion and explicitness are inherited by descendants. A block also runs
  when any of its descendants runs.

Evaluation recomputes every flag from the declared data, so running it again
over the same tree gives the same flags.
"""

import fnmatch
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .logging_config import get_logger
from .models import Block, Container, Test

if TYPE_CHECKING:
    from .configuration.root import PesterConfiguration

logger = get_logger(__name__)


def _lowered(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(v.lower() for v in values if v)


@dataclass(frozen=True)
class _Inherited:
    include: bool = False
    exclude: bool = False
    explicit: bool = False
    skip: bool = False
    focus: bool = False


class FilterEvaluator:
    """
    Applies tag, name and line filters to a test tree.

    Args:
        tag: Tags to include, ``-like`` wildcards allowed
        exclude_tag: Tags to exclude, ``-like`` wildcards allowed
        line: ``path:line`` declaration sites to run explicitly
        exclude_line: ``path:line`` declaration sites to exclude
        full_name: Wildcards matched against the dot-joined expanded path
    """

    def __init__(
        self,
        tag: Sequence[str] = (),
        exclude_tag: Sequence[str] = (),
        line: Sequence[str] = (),
        exclude_line: Sequence[str] = (),
        full_name: Sequence[str] = (),
    ) -> None:
        self.tag = _lowered(tag)
        self.exclude_tag = _lowered(exclude_tag)
        self.line = tuple(line)
        self.exclude_line = tuple(exclude_line)
        self.full_name = _lowered(full_name)

    @classmethod
    def from_configuration(
        cls, configuration: "PesterConfiguration"
    ) -> "FilterEvaluator":
        f = configuration.filter
        return cls(
            tag=f.tag.value,
            exclude_tag=f.exclude_tag.value,
            line=f.line.value,
            exclude_line=f.exclude_line.value,
            full_name=f.full_name.value,
        )

    @property
    def has_include_filters(self) -> bool:
        return bool(self.tag or self.line or self.full_name)

    def _tags_match(self, tags: Iterable[str], patterns: Sequence[str]) -> bool:
        if not patterns:
            return False
        return any(
            fnmatch.fnmatchcase(t.lower(), p) for t in tags if t for p in patterns
        )

    def match(self, item: Block | Test) -> tuple[bool, bool, bool]:
        """
        Evaluate the filters against one entity on its own.

        Returns:
            (include, exclude, explicit)
        """
        site = item.declaration_site
        exclude = self._tags_match(item.tag, self.exclude_tag) or (
            site in self.exclude_line
        )

        include = explicit = False
        if self.line and site in self.line:
            include = explicit = True
        elif self.full_name and any(
            fnmatch.fnmatchcase(item.full_name.lower(), p) for p in self.full_name
        ):
            include = True
        elif self._tags_match(item.tag, self.tag):
            include = True
        elif not self.has_include_filters:
            include = True

        return include, exclude, explicit

    def evaluate(self, containers: Iterable[Container]) -> None:
        """Set filter flags on every block and test of the given containers."""
        containers = list(containers)
        has_focus = any(
            b.focus for c in containers for b in c.iter_blocks()
        ) or any(t.focus for c in containers for t in c.iter_tests())

        for container in containers:
            for block in container.blocks:
                self._evaluate_block(block, _Inherited(), has_focus)
            container.should_run = any(b.should_run for b in container.blocks)
            self._mark_first_last(container.blocks)
            logger.debug(
                "Filtered container",
                source="Filter",
                container=container.name,
                should_run=container.should_run,
            )

    def _evaluate_block(
        self, block: Block, inherited: _Inherited, has_focus: bool
    ) -> None:
        include, exclude, explicit = self.match(block)
        focus = block.focus or inherited.focus

        block.exclude = exclude or inherited.exclude
        block.explicit = explicit or inherited.explicit
        block.include = (include or inherited.include) and (focus or not has_focus)
        block.skip = block.skip or inherited.skip

        scope = _Inherited(
            include=include or inherited.include,
            exclude=block.exclude,
            explicit=block.explicit,
            skip=block.skip,
            focus=focus,
        )
        for child in block.blocks:
            self._evaluate_block(child, scope, has_focus)
        for test in block.tests:
            self._evaluate_test(test, scope, has_focus)

        runnable_children = any(c.should_run for c in block.blocks) or any(
            t.should_run for t in block.tests
        )
        block.should_run = not block.exclude and (block.include or runnable_children)

        self._mark_first_last(block.blocks)
        self._mark_first_last(block.tests)

    def _evaluate_test(
        self, test: Test, inherited: _Inherited, has_focus: bool
    ) -> None:
        include, exclude, explicit = self.match(test)
        focus = test.focus or inherited.focus

        test.exclude = exclude or inherited.exclude
        test.explicit = explicit or inherited.explicit
        test.include = (include or inherited.include) and (focus or not has_focus)
        test.skip = test.skip or inherited.skip
        test.should_run = test.include and not test.exclude

        if test.should_run and test.skip and test.explicit:
            logger.debug(
                "Explicit filter match overrides skip",
                source="Skip",
                test=test.full_name,
            )
        elif not test.should_run:
            logger.debug(
                "Test excluded by filter",
                source="Filter",
                test=test.full_name,
                excluded=test.exclude,
            )

    def _mark_first_last(self, items: Sequence[Block | Test]) -> None:
        runnable = [item for item in items if item.should_run]
        for item in items:
            item.first = False
            item.last = False
        if runnable:
            runnable[0].first = True
            runnable[-1].last = True
