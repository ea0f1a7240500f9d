# © Copyright 2022-2024 Mikołaj Kuranowski
# SPDX-License-Identifier: GPL-3.0-or-later

from typing import ClassVar


class WrapperError(Exception):
    """WrapperError is the base for all errors which prevent the
    :py:class:`~metarust_cargo.Delegator` from running cargo.

    The command-line wrapper logs those errors (without a traceback)
    and exits with the :py:attr:`exit_code` of the concrete error class.
    """

    exit_code: ClassVar[int]
    """exit_code is the status the command-line wrapper exits with,
    following POSIX shell conventions."""


class WorkingDirectoryMissing(WrapperError):
    """WorkingDirectoryMissing is raised when the current working directory
    can't be resolved (usually because it was removed), and the ``PWD``
    environment variable doesn't provide a fallback."""

    exit_code: ClassVar[int] = 1

    def __init__(self, cause: OSError) -> None:
        self.cause = cause
        super().__init__(f"can't resolve the working directory ({cause.strerror or cause})")


class LaunchError(WrapperError):
    """LaunchError is the abstract base for errors raised when the delegated
    program could not be started at all. Only its subclasses are ever raised.

    Failures of the program itself are never reported through LaunchError -
    those are forwarded as the program's exit code.
    """

    program: str
    cause: OSError

    def __init__(self, program: str, cause: OSError) -> None:
        self.program = program
        self.cause = cause
        super().__init__(f"{self.reason}: {program} ({cause.strerror or cause})")

    @property
    def reason(self) -> str:
        raise NotImplementedError


class ProgramNotFound(LaunchError):
    """ProgramNotFound is raised when the delegated program can't be located."""

    exit_code: ClassVar[int] = 127

    @property
    def reason(self) -> str:
        return "command not found"


class ProgramNotExecutable(LaunchError):
    """ProgramNotExecutable is raised when the delegated program exists,
    but the operating system refused to execute it (e.g. missing permissions)."""

    exit_code: ClassVar[int] = 126

    @property
    def reason(self) -> str:
        return "cannot execute"


class FatalError(Exception):
    """FatalError is raised by the stack interpreter on any parse or runtime error.
    The interpreter's command line prints it as ``FATAL: <message>`` and exits with 1.

    >>> str(FatalError("stack underflow"))
    'stack underflow'
    """

    exit_code: ClassVar[int] = 1
