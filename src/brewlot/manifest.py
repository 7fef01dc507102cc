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

"""Manifest files map a variant to a source tree pinned to a commit.

Each non-comment line looks like::

    <variant>: <repository url>@<commit ref> [<subdirectory>]
"""

from dataclasses import dataclass
import os
from pathlib import Path
import re
import sys
from typing import Optional

import requests

from .errors import ManifestError


LINE_REGEX = re.compile(r"^(?P<variant>[^\s:/]+):\s+(?P<rest>.*)$")


@dataclass(frozen=True)
class BuildUnit:

    tag: str
    repository_url: str
    commit_ref: str
    subdirectory: str = ""

    @property
    def dockerfile_path(self) -> str:
        return f"{self.subdirectory}/Dockerfile".lstrip("/")


@dataclass(frozen=True)
class ManifestRequest:
    """A repo or repo:variant asked for on the command line."""

    request: str
    identifier: str
    name: str
    variant: Optional[str] = None

    @property
    def tag(self) -> str:
        if self.variant is None:
            return self.name
        return f"{self.name}:{self.variant}"


def _is_url(identifier: str) -> bool:
    return identifier.startswith(("http://", "https://"))


def split_location(location: str) -> tuple[str, str]:
    """Split ``url@ref`` into url and ref at the first ``@`` past the host.

    User info like ``https://user:pw@host/repo@ref`` or ``git@host:repo@ref``
    stays part of the url, and a ref may itself contain ``@``. Returns an
    empty ref when there is no separator.
    """
    scheme_end = location.find("://")
    if scheme_end >= 0:
        start = scheme_end + len("://")
        path_start = location.find("/", start)
    else:
        # scp-like git@host:path
        start = 0
        path_start = location.find(":")
    if path_start < 0:
        path_start = start
    at = location.find("@", path_start)
    if at < 0:
        return location, ""
    return location[:at], location[at + 1 :]


def _warn(manifest_name, line_number, msg):
    sys.stderr.write(f"warning: {manifest_name}:{line_number}: {msg}\n")


def parse_manifest(
    text: str, manifest_name: str, variant: Optional[str] = None
) -> list[BuildUnit]:
    """Parse manifest text into build units in declaration order.

    Malformed lines are skipped with a warning. When a variant is given,
    only that entry is returned. A tag declared twice keeps its first
    definition.
    """
    units: list[BuildUnit] = []
    seen: dict[str, BuildUnit] = {}
    for line_number, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        m = LINE_REGEX.match(line)
        if m is None:
            _warn(manifest_name, line_number, f"expected '<variant>: <url>@<ref>', got '{line}'")
            continue
        line_variant = m.group("variant")
        location, _, subdirectory = m.group("rest").strip().partition(" ")
        url, ref = split_location(location)
        if not url or not ref:
            _warn(manifest_name, line_number, f"missing '<url>@<ref>' in '{line}'")
            continue

        if variant is not None and line_variant != variant:
            continue

        unit = BuildUnit(
            tag=f"{manifest_name}:{line_variant}",
            repository_url=url,
            commit_ref=ref,
            subdirectory=subdirectory.strip().strip("/"),
        )
        if unit.tag in seen:
            if seen[unit.tag] != unit:
                _warn(
                    manifest_name,
                    line_number,
                    f"{unit.tag} already declared, keeping the first definition",
                )
            continue
        seen[unit.tag] = unit
        units.append(unit)
    return units


def parse_request(request: str, library: Path) -> ManifestRequest:
    """Figure out which manifest a command line request refers to.

    Accepts ``repo``, ``repo:variant``, a path to a manifest file with an
    optional ``:variant`` suffix, or an http(s) URL with an optional
    ``:variant`` suffix.
    """
    request = request.rstrip("/")

    if _is_url(request):
        url, variant = request, None
        head, _, tail = request.rpartition(":")
        if "://" in head and "/" not in tail:
            url, variant = head, tail
        name = url.rstrip("/").rsplit("/", 1)[-1]
        return ManifestRequest(request, url, name, variant or None)

    if os.path.isfile(request):
        return ManifestRequest(request, request, os.path.basename(request))

    repo, _, variant = request.partition(":")
    if os.path.isfile(repo):
        return ManifestRequest(request, repo, os.path.basename(repo), variant or None)
    return ManifestRequest(request, str(Path(library) / repo), repo, variant or None)


class ManifestLoader:
    """Load manifest text from a local file or an http(s) URL."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 30):
        self.__session = session
        self.__timeout = timeout
        self.__cache: dict[str, str] = {}

    def _session(self) -> requests.Session:
        if self.__session is None:
            self.__session = requests.Session()
        return self.__session

    def load(self, identifier: str) -> str:
        if identifier not in self.__cache:
            if _is_url(identifier):
                self.__cache[identifier] = self._fetch(identifier)
            else:
                self.__cache[identifier] = self._read(identifier)
        return self.__cache[identifier]

    def _fetch(self, url: str) -> str:
        try:
            response = self._session().get(url, timeout=self.__timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ManifestError(f"could not fetch manifest {url}: {e}") from e
        return response.text

    def _read(self, path: str) -> str:
        try:
            with open(path, "r") as fin:
                return fin.read()
        except OSError as e:
            raise ManifestError(f"could not read manifest {path}: {e}") from e
