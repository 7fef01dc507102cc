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

from abc import abstractmethod, ABC
from pathlib import Path
import shlex
import subprocess
import sys
import time
from typing import Optional


class Work(ABC):

    @abstractmethod
    def __str__(self) -> str: ...

    @abstractmethod
    def __call__(self) -> str: ...


class CommandFailedError(Exception):

    def __init__(self, cmd: list[str], return_code: int, output: str):
        super().__init__(f"'{shlex.join(cmd)}' exited with {return_code}")
        self.cmd = cmd
        self.return_code = return_code
        self.output = output


class ExecuteCommand(Work):
    """Run a command, streaming stdout and stderr to an optional output.

    Anything with a ``write(line)`` method works as output, a BuildLog
    being the usual one. The combined output is returned on success and
    attached to the CommandFailedError otherwise.
    """

    def __init__(
        self,
        cmd: list[str],
        working_directory: Optional[Path] = None,
        output=None,
    ):
        super().__init__()
        self.__cmd = [str(c) for c in cmd]
        if working_directory is None:
            working_directory = Path.cwd()
        self.__working_directory = working_directory
        self.__output = output

    def __str__(self):
        return shlex.join(self.__cmd)

    def __call__(self) -> str:
        if self.__output is not None:
            self.__output.write(f"+ {self}\n")
        try:
            process = subprocess.Popen(
                self.__cmd,
                cwd=self.__working_directory,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            raise CommandFailedError(self.__cmd, -1, str(e)) from e
        lines = []
        while line := process.stdout.readline().decode(errors="replace"):
            lines.append(line)
            if self.__output is not None:
                self.__output.write(line)
        process.stdout.close()
        return_code = process.wait()
        if return_code != 0:
            raise CommandFailedError(self.__cmd, return_code, "".join(lines))
        return "".join(lines)


class Retry(Work):

    def __init__(
        self,
        work: Work,
        attempts=5,
        exponent=2,
        multiplier=15,
        constant=5,
        exceptions=(CommandFailedError,),
    ):
        super().__init__()
        self.__work = work
        self.__attempts = attempts
        self.__exponent = exponent
        self.__multiplier = multiplier
        self.__constant = constant
        self.__exceptions = exceptions

    def __str__(self):
        return f"Retry(attempts={self.__attempts}): {str(self.__work)}"

    def __call__(self) -> str:
        for i in range(self.__attempts):
            try:
                return self.__work()
            except self.__exceptions as e:
                if i + 1 >= self.__attempts:
                    # This was our last attempt
                    raise e
                seconds_to_wait = (
                    self.__multiplier * pow(i, self.__exponent) + self.__constant
                )
                sys.stderr.write(
                    f"Caught exception {e}; retrying in {seconds_to_wait} seconds\n"
                )
                time.sleep(seconds_to_wait)
