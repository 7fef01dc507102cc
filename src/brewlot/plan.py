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

"""Turn command line requests into a BuildPlan."""

import os
from pathlib import Path
from typing import Optional

from .build_log import BuildLogs
from .errors import ManifestError, MirrorError, RefResolutionError
from .manifest import ManifestLoader, parse_manifest, parse_request
from .mirror import SourceTreeResolver
from .scheduler import BuildPlan


def library_requests(library: Path) -> list[str]:
    """Every manifest in the library, sorted by file name."""
    library = Path(library)
    if not library.is_dir():
        raise ManifestError(f"library directory not found: {library}")
    return [
        str(library / name)
        for name in sorted(os.listdir(library))
        if name != "MAINTAINERS" and (library / name).is_file()
    ]


def gather(
    requests: list[str],
    library: Path,
    loader: ManifestLoader,
    logs: Optional[BuildLogs] = None,
) -> BuildPlan:
    """Parse the manifests named by requests, queueing tags in request order."""
    plan = BuildPlan()
    for request in requests:
        manifest_request = parse_request(request, library)
        if logs is not None:
            logs.record_request(manifest_request.tag, manifest_request.identifier)

        if manifest_request.variant is not None and manifest_request.tag in plan.units:
            plan.queue.append(manifest_request.tag)
            continue

        try:
            text = loader.load(manifest_request.identifier)
        except ManifestError as e:
            plan.errors[manifest_request.tag] = e
            plan.queue.append(manifest_request.tag)
            continue

        units = parse_manifest(text, manifest_request.name, manifest_request.variant)
        for unit in units:
            # First manifest to declare a tag wins
            plan.units.setdefault(unit.tag, unit)

        if manifest_request.variant is None:
            plan.queue.extend(unit.tag for unit in units)
        else:
            plan.queue.append(manifest_request.tag)
    return plan


def resolve_sources(plan: BuildPlan, resolver: SourceTreeResolver):
    """Make sure every unit's commit is in a local mirror."""
    for tag in plan.queue:
        unit = plan.units.get(tag)
        if unit is None or tag in plan.sources or tag in plan.errors:
            continue
        try:
            plan.sources[tag] = resolver.ensure(unit.repository_url, unit.commit_ref)
        except (MirrorError, RefResolutionError) as e:
            plan.errors[tag] = e
