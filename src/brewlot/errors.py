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

class BrewError(RuntimeError):

    def __init__(self, msg):
        super().__init__(msg)


class ConfigError(BrewError):
    pass


class ManifestError(BrewError):
    """A manifest could not be read, so none of its units can be built."""


class UnknownTagError(BrewError):

    def __init__(self, tag: str):
        super().__init__(f"unknown repo:tag {tag}")
        self.tag = tag


class MirrorError(BrewError):
    pass


class RefResolutionError(BrewError):

    def __init__(self, ref: str, mirror=None):
        if mirror is None:
            super().__init__(f"invalid ref: {ref}")
        else:
            super().__init__(f"invalid ref: {ref} (in {mirror})")
        self.ref = ref


class MissingDockerfileError(BrewError):

    def __init__(self, path: str, ref: str):
        super().__init__(f"missing '{path}' at '{ref}'")
        self.path = path
        self.ref = ref


class DependencyCycleError(BrewError):

    def __init__(self, tags):
        self.tags = tuple(tags)
        super().__init__("cycle: " + " -> ".join(self.tags + self.tags[:1]))


class BuildBackendError(BrewError):

    def __init__(self, msg, output: str = ""):
        super().__init__(msg)
        self.output = output


class TagApplyError(BrewError):

    def __init__(self, msg, output: str = ""):
        super().__init__(msg)
        self.output = output
