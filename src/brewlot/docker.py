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

from pathlib import Path

from .commands import CommandFailedError, ExecuteCommand
from .errors import BuildBackendError, TagApplyError


class Docker:
    """Container build backend driving the docker CLI."""

    def __init__(self, binary: str = "docker"):
        self.__binary = binary

    def build(self, context: Path, tag: str, output=None):
        cmd = [self.__binary, "build", "-t", tag, str(context)]
        try:
            ExecuteCommand(cmd, working_directory=context, output=output)()
        except CommandFailedError as e:
            raise BuildBackendError(f"build backend error: {e}", output=e.output) from e

    def tag(self, existing: str, new: str, output=None):
        cmd = [self.__binary, "tag", existing, new]
        try:
            ExecuteCommand(cmd, output=output)()
        except CommandFailedError as e:
            raise TagApplyError(f"failed to tag {new}: {e}", output=e.output) from e
