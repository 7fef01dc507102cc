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

"""Find out which images a Dockerfile is built on."""

from pathlib import Path

from .errors import MissingDockerfileError, RefResolutionError
from .manifest import BuildUnit


def base_images(text: str) -> tuple[str, ...]:
    """Return every image referenced by a FROM instruction, in order.

    References to earlier build stages are left out since they are not
    images anyone has to build first.
    """
    images = []
    stages = set()
    for line in text.splitlines():
        tokens = line.split()
        if not tokens or tokens[0].upper() != "FROM":
            continue
        args = [t for t in tokens[1:] if not t.startswith("--")]
        if not args:
            continue
        image = args[0]
        if image.lower() not in stages:
            images.append(image)
        if len(args) >= 3 and args[1].upper() == "AS":
            stages.add(args[2].lower())
    return tuple(images)


def normalize_reference(reference: str, default_variant: str) -> str:
    """Append the default variant to a reference without a tag or digest."""
    if "@" in reference:
        return reference
    if ":" in reference.rsplit("/", 1)[-1]:
        return reference
    return f"{reference}:{default_variant}"


class BaseImageInspector:

    def __init__(self, git, default_variant: str = "latest"):
        self.__git = git
        self.__default_variant = default_variant

    def __call__(self, unit: BuildUnit, mirror: Path) -> tuple[str, ...]:
        commit = self.__git.resolve_commit(mirror, unit.commit_ref)
        if commit is None:
            raise RefResolutionError(unit.commit_ref)
        dockerfile = self.__git.read_file(mirror, commit, unit.dockerfile_path)
        if dockerfile is None:
            raise MissingDockerfileError(unit.dockerfile_path, unit.commit_ref)
        return tuple(
            normalize_reference(image, self.__default_variant)
            for image in base_images(dockerfile.decode(errors="replace"))
        )
