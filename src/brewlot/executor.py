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

import os
from pathlib import Path
import sys
from typing import Optional

from .build_log import BuildLogs
from .commands import CommandFailedError
from .errors import BuildBackendError, RefResolutionError, TagApplyError
from .manifest import BuildUnit
from .scheduler import BuildRecord, BuildStatus


def set_mtimes(context: Path, repo_root: Path, timestamps: dict[str, int], default: int):
    """Give every file in context the time of the last commit that touched it.

    Anything without history, directories included, gets default.
    """
    for dirpath, dirnames, filenames in os.walk(context):
        if ".git" in dirnames:
            dirnames.remove(".git")
        os.utime(dirpath, (default, default))
        for name in filenames:
            path = Path(dirpath) / name
            mtime = timestamps.get(path.relative_to(repo_root).as_posix(), default)
            os.utime(path, (mtime, mtime), follow_symlinks=False)


class BuildExecutor:
    """Check out, build and tag a unit whose dependencies are already built."""

    def __init__(
        self,
        git,
        docker,
        namespaces=(),
        logs: Optional[BuildLogs] = None,
        dry_run: bool = False,
    ):
        self.__git = git
        self.__docker = docker
        self.__namespaces = tuple(namespaces)
        self.__logs = BuildLogs(None) if logs is None else logs
        self.__dry_run = dry_run

    def execute(self, unit: BuildUnit, mirror: Path) -> BuildRecord:
        mirror = Path(mirror)
        commit = self.__git.resolve_commit(mirror, unit.commit_ref)
        if commit is None:
            return BuildRecord(
                unit.tag, BuildStatus.FAILED, reason=str(RefResolutionError(unit.commit_ref))
            )

        context = mirror / unit.subdirectory if unit.subdirectory else mirror
        if self.__dry_run:
            sys.stdout.write(f"- would build {unit.tag} from {context} at {commit}\n")
            return BuildRecord(unit.tag, BuildStatus.BUILT)

        with self.__logs.for_unit(unit.tag) as log:
            try:
                self.__git.materialize(mirror, commit, output=log)
                set_mtimes(
                    context,
                    mirror,
                    self.__git.file_timestamps(mirror, commit, unit.subdirectory),
                    self.__git.commit_timestamp(mirror, commit),
                )
            except (CommandFailedError, OSError) as e:
                return BuildRecord(
                    unit.tag,
                    BuildStatus.FAILED,
                    reason=f"could not check out {commit}: {e}",
                    output=log.tail(),
                    log=log.path,
                )

            try:
                self.__docker.build(context, unit.tag, output=log)
            except BuildBackendError as e:
                return BuildRecord(
                    unit.tag, BuildStatus.FAILED, reason=str(e), output=e.output, log=log.path
                )

            tag_errors = []
            for namespace in self.__namespaces:
                new_tag = f"{namespace}/{unit.tag}"
                try:
                    self.__docker.tag(unit.tag, new_tag, output=log)
                except TagApplyError as e:
                    sys.stderr.write(f"- warning; {e}\n")
                    tag_errors.append(new_tag)

        return BuildRecord(
            unit.tag, BuildStatus.BUILT, tag_errors=tuple(tag_errors), log=log.path
        )
