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

from dataclasses import dataclass, field
from pathlib import Path
import sys
from threading import Lock

from .commands import CommandFailedError
from .errors import MirrorError, RefResolutionError


def mirror_key(url: str) -> str:
    """Turn a repository url into a relative path usable as a mirror location.

    >>> mirror_key("https://user:pw@example.com/repo.git/")
    'example.com/repo'
    """
    key = url
    scheme_end = key.find("://")
    if scheme_end >= 0:
        key = key[scheme_end + len("://") :]
    host_end = key.find("/")
    userinfo_end = key.rfind("@", 0, host_end if host_end >= 0 else len(key))
    if userinfo_end >= 0:
        key = key[userinfo_end + 1 :]
    key = key.rstrip("/")
    key = key.removesuffix(".git")
    key = key.rstrip("/")
    key = key.replace(":", "/")
    parts = [p for p in key.split("/") if p and p not in (".", "..")]
    if not parts:
        raise MirrorError(f"cannot derive a mirror location from '{url}'")
    return "/".join(parts)


@dataclass
class MirrorHandle:
    """A persistent working copy shared by every unit from one repository."""

    key: str
    url: str
    path: Path
    lock: Lock = field(default_factory=Lock, repr=False, compare=False)
    clones: int = 0
    fetches: int = 0


class SourceTreeResolver:
    """Make sure a local mirror of a repository holds a wanted commit.

    This is the only thing that creates or updates mirrors. Nothing is ever
    checked out here, that happens right before a build.
    """

    def __init__(self, src_dir: Path, git, allow_network: bool = True, output=None):
        self.__src_dir = Path(src_dir)
        self.__git = git
        self.__allow_network = allow_network
        self.__output = output
        self.mirrors: dict[str, MirrorHandle] = {}

    def handle_for(self, url: str) -> MirrorHandle:
        key = mirror_key(url)
        if key not in self.mirrors:
            self.mirrors[key] = MirrorHandle(key=key, url=url, path=self.__src_dir / key)
        return self.mirrors[key]

    def _say(self, msg):
        if self.__output is None:
            sys.stdout.write(msg)
        else:
            self.__output.write(msg)

    def ensure(self, url: str, ref: str) -> Path:
        """Return the mirror path for url, cloning or fetching only when ref is missing."""
        handle = self.handle_for(url)
        with handle.lock:
            if not handle.path.is_dir():
                if not self.__allow_network:
                    raise MirrorError(f"directory not found: {handle.path}")
                self._say(f"Cloning {handle.key} ({url}) ...\n")
                try:
                    self.__git.clone(url, handle.path)
                except CommandFailedError as e:
                    raise MirrorError(f"failed to clone {url}: {e}") from e
                handle.clones += 1
            elif not (handle.path / ".git").exists():
                # Without its own .git, git would use whatever repository encloses it
                raise MirrorError(f"not a git mirror: {handle.path}")
            elif self.__git.resolve_commit(handle.path, ref) is None:
                if not self.__allow_network:
                    raise RefResolutionError(ref, handle.path)
                self._say(f"Fetching {handle.key} ({url}) ...\n")
                try:
                    self.__git.fetch_all(handle.path)
                except CommandFailedError as e:
                    raise MirrorError(f"failed to fetch {url}: {e}") from e
                handle.fetches += 1

            try:
                self.__git.disable_gc(handle.path)
            except CommandFailedError as e:
                raise MirrorError(f"failed to configure {handle.path}: {e}") from e

            if self.__git.resolve_commit(handle.path, ref) is None:
                raise RefResolutionError(ref, handle.path)
        return handle.path
