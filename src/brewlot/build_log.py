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

from datetime import datetime
from pathlib import Path
import sys
from typing import Optional


class BuildLog:
    """Collects all output produced while processing one build unit.

    Output is kept in memory so it can be shown when something fails, and
    is also appended to a log file when one is given.
    """

    def __init__(self, name: str, path: Optional[Path] = None, echo: bool = False):
        self._name = name
        self._path = path
        self._echo = echo
        self._lines: list[str] = []
        self._file = None

    @property
    def path(self):
        return self._path

    @property
    def text(self) -> str:
        return "".join(self._lines)

    def tail(self, count: int = 40) -> str:
        return "".join(self._lines[-count:])

    def write(self, line):
        self._lines.append(line)
        if self._file is not None:
            self._file.write(line)
            self._file.flush()
        if self._echo:
            sys.stdout.write(line)

    def __enter__(self):
        if self._path is not None:
            self._file = open(self._path, "a")
        self.write(f">>> Begin output from: {self._name}\n")
        return self

    def __exit__(self, t, v, tb):
        self.write(f"<<< End output from: {self._name}\n")
        if self._file is not None:
            self._file.close()
            self._file = None


class BuildLogs:
    """One directory of logs per run, plus a latest/ directory of symlinks."""

    def __init__(self, logs_dir: Optional[Path], now: Optional[datetime] = None, echo=False):
        self._echo = echo
        self._run_dir: Optional[Path] = None
        self._latest_dir: Optional[Path] = None
        if logs_dir is not None:
            if now is None:
                now = datetime.now()
            logs_dir = Path(logs_dir)
            self._run_dir = logs_dir / f"build-{now:%Y-%m-%d--%H-%M-%S}"
            self._run_dir.mkdir(parents=True, exist_ok=True)
            self._latest_dir = logs_dir / "latest"
            self._latest_dir.mkdir(parents=True, exist_ok=True)

    @property
    def run_dir(self):
        return self._run_dir

    def record_request(self, tag: str, source: str):
        if self._run_dir is None:
            return
        with open(self._run_dir / "repos.txt", "a") as fout:
            fout.write(f"{tag} ({source})\n")

    def for_unit(self, tag: str) -> BuildLog:
        if self._run_dir is None:
            return BuildLog(tag, echo=self._echo)
        log_path = self._run_dir / f"build-{tag}.log"
        log_path.touch()
        latest = self._latest_dir / log_path.name
        if latest.is_symlink() or latest.exists():
            latest.unlink()
        latest.symlink_to(log_path)
        return BuildLog(tag, path=log_path, echo=self._echo)
