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

"""Version-control backend, a thin wrapper around the git CLI."""

from pathlib import Path
import subprocess
from typing import Optional

from .commands import ExecuteCommand, Retry


class Git:

    def __init__(self, binary: str = "git", fetch_attempts: int = 3):
        self.__binary = binary
        self.__fetch_attempts = fetch_attempts

    def _command(self, args, cwd: Path, output=None) -> ExecuteCommand:
        return ExecuteCommand([self.__binary, *args], working_directory=cwd, output=output)

    def _run(self, args, cwd: Path, output=None) -> str:
        return self._command(args, cwd, output)()

    def _network(self, args, cwd: Path, output=None) -> str:
        work = self._command(args, cwd, output)
        return Retry(work, attempts=self.__fetch_attempts)()

    def _query(self, args, cwd: Path) -> Optional[str]:
        """Run a read-only git command, returning None instead of raising."""
        if not Path(cwd).is_dir():
            return None
        proc = subprocess.run(
            [self.__binary, *args],
            cwd=cwd,
            capture_output=True,
            text=True,
        )
        if proc.returncode != 0:
            return None
        return proc.stdout

    def clone(self, url: str, dest: Path, output=None):
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        self._network(["clone", "-q", url, str(dest)], dest.parent, output)

    def fetch_all(self, dest: Path, output=None):
        self._network(["fetch", "-q", "--all"], dest, output)
        self._network(["fetch", "-q", "--tags"], dest, output)

    def disable_gc(self, dest: Path):
        # gc must not drop commits a manifest may still name
        self._run(["config", "gc.auto", "0"], dest)

    def resolve_commit(self, dest: Path, ref: str) -> Optional[str]:
        out = self._query(
            ["rev-parse", "--verify", "--quiet", "--end-of-options", f"{ref}^{{commit}}"],
            dest,
        )
        if not out:
            return None
        return out.strip()

    def read_file(self, dest: Path, commit: str, path: str) -> Optional[bytes]:
        if not Path(dest).is_dir():
            return None
        proc = subprocess.run(
            [self.__binary, "show", f"{commit}:{path}"],
            cwd=dest,
            capture_output=True,
        )
        if proc.returncode != 0:
            return None
        return proc.stdout

    def materialize(self, dest: Path, commit: str, output=None):
        """Reset the mirror's working tree to exactly the given commit."""
        self._run(["reset", "-q", "HEAD"], dest, output)
        self._run(["checkout", "-q", "--", "."], dest, output)
        self._run(["clean", "-dfxq"], dest, output)
        self._run(["checkout", "-q", commit, "--"], dest, output)

    def commit_timestamp(self, dest: Path, commit: str) -> int:
        return int(self._run(["log", "-1", "--format=%ct", commit, "--"], dest).strip())

    def file_timestamps(self, dest: Path, commit: str, subdirectory: str = "") -> dict[str, int]:
        """Map each path under subdirectory to the time of the last commit touching it.

        Paths are relative to the repository root.
        """
        out = self._run(
            [
                "-c",
                "core.quotePath=false",
                "log",
                "--format=%x00%ct",
                "--name-only",
                commit,
                "--",
                subdirectory or ".",
            ],
            dest,
        )
        timestamps: dict[str, int] = {}
        for chunk in out.split("\x00"):
            lines = chunk.splitlines()
            if not lines:
                continue
            commit_time = int(lines[0])
            for name in lines[1:]:
                if name:
                    # Newest commits come first
                    timestamps.setdefault(name, commit_time)
        return timestamps
