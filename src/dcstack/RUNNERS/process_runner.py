# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
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

"""
Execution of external commands, either captured or with streamed output.
"""
import logging
import os
import subprocess
import threading
from typing import Callable, Dict, IO, List, NamedTuple, Optional

logger = logging.getLogger(__name__)

# Receives each line of output and the name of the stream it came from
OutputSink = Callable[[str, str], None]


class CommandResult(NamedTuple):
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


class CommandFailedError(RuntimeError):
    """
    Raised when an external command exits with a non-zero status.
    """
    def __init__(self, command: List[str], returncode: int, output: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        message = f"Command '{' '.join(command)}' failed with exit code {returncode}"
        if output.strip():
            message += f": {output.strip()}"
        super().__init__(message)


def log_sink(line: str, stream: str) -> None:
    logger.info("[%s] %s", stream, line.rstrip('\n'))


class CommandRunner:
    """
    Runs external commands without a shell.
    """
    def __init__(self, env: Optional[Dict[str, str]] = None):
        """
        Initializes the runner.

        Args:
            env (Optional[Dict[str, str]]): Base environment for every
                command, defaults to the current process environment.
        """
        self.env = dict(os.environ if env is None else env)

    def _environment(self, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        env = dict(self.env)
        if extra:
            env.update(extra)
        return env

    def run(self,
            command: List[str],
            input_text: Optional[str] = None,
            env: Optional[Dict[str, str]] = None,
            check: bool = False) -> CommandResult:
        """
        Runs a command to completion and captures its output.

        Args:
            command (List[str]): Command and arguments to execute.
            input_text (Optional[str]): Text written to the command's stdin.
            env (Optional[Dict[str, str]]): Extra environment variables.
            check (bool): Raise CommandFailedError on a non-zero exit.

        Returns:
            CommandResult: Exit status and captured output.
        """
        logger.debug("Running command: %s", ' '.join(command))
        completed = subprocess.run(
            command,
            input=input_text,
            capture_output=True,
            text=True,
            env=self._environment(env),
            # Avoid shell=True for security reasons (CWE-78)
            shell=False
        )
        result = CommandResult(completed.returncode, completed.stdout or "", completed.stderr or "")
        if check and result.returncode != 0:
            raise CommandFailedError(command, result.returncode, result.output)
        return result

    def stream(self,
               command: List[str],
               input_text: Optional[str] = None,
               env: Optional[Dict[str, str]] = None,
               sink: Optional[OutputSink] = None) -> int:
        """
        Runs a command and hands every output line to `sink` as it arrives.

        stdout and stderr are drained by one thread each; both threads are
        joined before the exit status is read, so no buffered output is lost
        when the process ends.

        Args:
            command (List[str]): Command and arguments to execute.
            input_text (Optional[str]): Text written to the command's stdin.
            env (Optional[Dict[str, str]]): Extra environment variables.
            sink (Optional[OutputSink]): Line consumer, defaults to logging.

        Returns:
            int: The exit status (always 0).

        Raises:
            CommandFailedError: If the command exits with a non-zero status.
        """
        sink = sink or log_sink
        collected: List[str] = []
        lock = threading.Lock()

        def drain(pipe: IO[str], name: str):
            for line in pipe:
                with lock:
                    collected.append(line)
                    sink(line, name)
            pipe.close()

        logger.debug("Streaming command: %s", ' '.join(command))
        process = subprocess.Popen(
            command,
            stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=self._environment(env),
            shell=False
        )
        readers = [
            threading.Thread(target=drain, args=(process.stdout, "stdout"), daemon=True),
            threading.Thread(target=drain, args=(process.stderr, "stderr"), daemon=True),
        ]
        for reader in readers:
            reader.start()

        if input_text is not None:
            try:
                process.stdin.write(input_text)
            except BrokenPipeError:
                logger.debug("Command closed stdin early: %s", ' '.join(command))
            finally:
                try:
                    process.stdin.close()
                except BrokenPipeError:
                    pass

        for reader in readers:
            reader.join()
        returncode = process.wait()

        if returncode != 0:
            raise CommandFailedError(command, returncode, ''.join(collected))
        return returncode
