# Copyright 2024 Shane Loretz.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Order builds so an image is never built before an image it is based on.

There is no dependency graph. The scheduler looks at the unit at the front
of the queue and, when one of its base images is still waiting further
back, sends it to the back of the queue. A unit that comes back around
without anything having finished in the meantime means the remaining
units can never make progress, so the cycle is found and failed.
"""

from collections import deque
from dataclasses import dataclass, field
import enum
from pathlib import Path
import sys
from typing import Callable, Optional

from .errors import BrewError, DependencyCycleError, UnknownTagError
from .manifest import BuildUnit


class BuildStatus(enum.Enum):
    BUILT = "built"
    DEFERRED = "deferred"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class BuildRecord:

    tag: str
    status: BuildStatus
    reason: Optional[str] = None
    output: Optional[str] = None
    tag_errors: tuple[str, ...] = ()
    log: Optional[Path] = None


class BuildReport:

    def __init__(self):
        self.records: list[BuildRecord] = []

    def add(self, record: BuildRecord):
        self.records.append(record)

    @property
    def final(self) -> dict[str, BuildRecord]:
        """Last record of every tag, in the order tags were first seen."""
        final: dict[str, BuildRecord] = {}
        for record in self.records:
            final[record.tag] = record
        return final

    @property
    def built_order(self) -> list[str]:
        return [r.tag for r in self.records if r.status == BuildStatus.BUILT]

    @property
    def failed(self) -> bool:
        return any(
            r.status in (BuildStatus.FAILED, BuildStatus.SKIPPED)
            for r in self.final.values()
        )


@dataclass
class QueueEntry:

    tag: str
    deferrals: int = 0
    # How many units had finished when this entry was last deferred
    stamp: Optional[int] = None


class BuildQueue:

    def __init__(self, tags=()):
        self.__entries: deque[QueueEntry] = deque()
        for tag in tags:
            self.append(tag)

    def __len__(self):
        return len(self.__entries)

    def __contains__(self, tag):
        return any(e.tag == tag for e in self.__entries)

    def tags(self) -> list[str]:
        return [e.tag for e in self.__entries]

    def append(self, tag: str):
        """Add a tag to the back of the queue unless it is already waiting."""
        if tag not in self:
            self.__entries.append(QueueEntry(tag))

    def pop_front(self) -> QueueEntry:
        return self.__entries.popleft()

    def push_front(self, entry: QueueEntry):
        self.__entries.appendleft(entry)

    def defer(self, entry: QueueEntry, stamp: int):
        entry.deferrals += 1
        entry.stamp = stamp
        self.__entries.append(entry)

    def remove(self, tag: str):
        for entry in self.__entries:
            if entry.tag == tag:
                self.__entries.remove(entry)
                return


@dataclass
class BuildPlan:
    """Everything the scheduler needs, gathered before the first build."""

    units: dict[str, BuildUnit] = field(default_factory=dict)
    queue: list[str] = field(default_factory=list)
    # Units that can't be built because their manifest or mirror failed
    errors: dict[str, BrewError] = field(default_factory=dict)
    # Mirror path of every unit in units
    sources: dict[str, Path] = field(default_factory=dict)


def _find_cycle(start: str, bases: dict[str, tuple[str, ...]], waiting: set[str]) -> list[str]:
    path: list[str] = []
    index: dict[str, int] = {}
    current = start
    while current not in index:
        index[current] = len(path)
        path.append(current)
        following = None
        for base in bases.get(current, ()):
            if base in waiting and base != current:
                following = base
                break
        if following is None:
            return [start]
        current = following
    return path[index[current] :]


class Scheduler:

    def __init__(
        self,
        inspector: Callable[[BuildUnit, Path], tuple[str, ...]],
        executor,
    ):
        self.__inspector = inspector
        self.__executor = executor

    def run(self, plan: BuildPlan) -> BuildReport:
        report = BuildReport()
        queue = BuildQueue(plan.queue)
        bases: dict[str, tuple[str, ...]] = {}
        # Count of units that finished one way or another
        progress = 0

        def finish(record: BuildRecord):
            nonlocal progress
            progress += 1
            report.add(record)
            _print_outcome(record)

        while len(queue):
            entry = queue.pop_front()
            tag = entry.tag

            if entry.stamp is not None and entry.stamp == progress:
                # Went all the way around the queue without building anything
                sys.stdout.write(
                    f"- {tag} deferred {entry.deferrals} times with nothing built in between\n"
                )
                waiting = set(queue.tags()) | {tag}
                cycle = _find_cycle(tag, bases, waiting)
                error = DependencyCycleError(cycle)
                for member in cycle:
                    queue.remove(member)
                    finish(BuildRecord(member, BuildStatus.FAILED, reason=str(error)))
                if tag not in cycle:
                    queue.push_front(QueueEntry(tag, deferrals=entry.deferrals))
                continue

            if tag in plan.errors:
                finish(BuildRecord(tag, BuildStatus.FAILED, reason=str(plan.errors[tag])))
                continue

            unit = plan.units.get(tag)
            if unit is None:
                finish(BuildRecord(tag, BuildStatus.SKIPPED, reason=str(UnknownTagError(tag))))
                continue

            sys.stdout.write(f"Processing {tag} ...\n")

            if tag not in bases:
                try:
                    bases[tag] = tuple(self.__inspector(unit, plan.sources[tag]))
                except BrewError as e:
                    finish(BuildRecord(tag, BuildStatus.FAILED, reason=str(e)))
                    continue

            pending = None
            for base in bases[tag]:
                if base in queue:
                    pending = base
                    break
            if pending is not None:
                # Come back once the image it is based on has been built
                sys.stdout.write(f"- deferred; FROM {pending}\n")
                report.add(BuildRecord(tag, BuildStatus.DEFERRED, reason=f"FROM {pending}"))
                queue.defer(entry, progress)
                continue

            finish(self.__executor.execute(unit, plan.sources[tag]))

        return report


def _print_outcome(record: BuildRecord):
    if record.status == BuildStatus.BUILT:
        sys.stdout.write(f"- built {record.tag}\n")
        if record.tag_errors:
            sys.stdout.write(f"- failed to tag: {' '.join(record.tag_errors)}\n")
    elif record.status == BuildStatus.SKIPPED:
        sys.stderr.write(f"Unknown repo:tag: {record.tag}\n")
    else:
        where = f"; see {record.log}" if record.log is not None else ""
        sys.stdout.write(f"- failed {record.tag}; {record.reason}{where}\n")
