"""Command execution using invoke library with custom extensions."""

from pathlib import Path

from invoke import Context, Result
from invoke.exceptions import CommandTimedOut

from mergeflow.core.log import logger


class Runner(Context):
    """invoke.Context with a single execute() entry point for git
    commands.

    Output is always captured, never echoed; callers inspect
    ``Result.exited`` rather than relying on exceptions when
    ``check=False``.
    """

    def execute(
        self,
        command: str,
        cwd: Path | None = None,
        timeout: int | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
    ) -> Result:
        """Execute a command and capture its output.

        Args:
            command: Command string to execute
            cwd: Working directory for command execution
            timeout: Maximum execution time in seconds
            check: If True, raise exception on non-zero exit code
            env: Environment variables to add (updates os.environ,
                does not replace it)

        Returns:
            invoke.Result with stdout, stderr, exited (return code;
                -1 when the command timed out)

        Raises:
            invoke.UnexpectedExit: If check=True and command
                returns non-zero
        """
        kwargs = {
            "hide": True,
            "warn": not check,
            "in_stream": False,
        }

        if timeout:
            kwargs["timeout"] = timeout

        if env:
            kwargs["env"] = env

        logger.spew("Running command", command=command, cwd=str(cwd or ""))

        try:
            if cwd:
                with self.cd(str(cwd)):
                    result = self.run(command, **kwargs)
            else:
                result = self.run(command, **kwargs)
        except CommandTimedOut as e:
            logger.warn(
                "Command timed out", command=command, timeout=timeout
            )
            result = e.result
            result.exited = -1

        logger.trace(
            "Command finished",
            command=command,
            exited=result.exited,
            stderr=result.stderr.strip(),
        )
        return result
