# © Copyright 2022-2024 Mikołaj Kuranowski
# SPDX-License-Identifier: GPL-3.0-or-later

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Mapping, Sequence

from typing_extensions import Self

from .errors import ProgramNotExecutable, ProgramNotFound, WorkingDirectoryMissing
from .options import DelegatorOptions


def sysroot_is_set(environ: Mapping[str, str], variable: str = "METARUST_SYSROOT") -> bool:
    """Checks whether the sysroot variable is set to a non-empty value.

    >>> sysroot_is_set({"METARUST_SYSROOT": "/opt/metarust"})
    True
    >>> sysroot_is_set({"METARUST_SYSROOT": ""})
    False
    >>> sysroot_is_set({})
    False
    """
    return bool(environ.get(variable))


def build_overrides(
    cwd: PurePath,
    options: DelegatorOptions = DelegatorOptions(),
) -> dict[str, str]:
    """Creates the environment variables to be layered onto the environment
    of the delegated program.

    >>> for k, v in build_overrides(Path("/home/user/project")).items():
    ...     print(f"{k}={v}")
    RUSTFLAGS=-Z always-encode-mir
    RUST_BACKTRACE=full
    METARUST=1
    RUSTC=../metarust/build/x86_64-unknown-linux-gnu/stage1/bin/rustc
    METARUST_DEPS=/home/user/project/target/debug/deps
    >>> from pathlib import PureWindowsPath
    >>> build_overrides(PureWindowsPath("C:\\\\work"))["METARUST_DEPS"]
    'C:/work/target/debug/deps'
    """
    return {
        "RUSTFLAGS": options.rustflags,
        "RUST_BACKTRACE": options.rust_backtrace,
        "METARUST": options.marker,
        "RUSTC": options.rustc,
        "METARUST_DEPS": (cwd / options.deps_subpath).as_posix(),
    }


def child_environment(environ: Mapping[str, str], overrides: Mapping[str, str]) -> dict[str, str]:
    """Returns a fresh copy of ``environ`` with ``overrides`` applied on top.

    >>> child_environment({"HOME": "/root", "METARUST": "0"}, {"METARUST": "1"})
    {'HOME': '/root', 'METARUST': '1'}
    """
    return {**environ, **overrides}


def exit_code_of(returncode: int) -> int:
    """Converts a :py:attr:`subprocess.CompletedProcess.returncode` into an exit status,
    the same way a POSIX shell does: death by signal N is reported as 128 + N.

    >>> exit_code_of(0)
    0
    >>> exit_code_of(101)
    101
    >>> exit_code_of(-9)
    137
    """
    return 128 - returncode if returncode < 0 else returncode


def working_directory(environ: Mapping[str, str]) -> Path:
    """Returns the current working directory. If it no longer exists, falls back to
    the ``PWD`` variable kept by the shell, the same way ``pwd`` would.

    :py:exc:`~metarust_cargo.errors.WorkingDirectoryMissing` is raised if neither is available.
    """
    try:
        return Path(os.getcwd())
    except FileNotFoundError as e:
        pwd = environ.get("PWD")
        if not pwd:
            raise WorkingDirectoryMissing(e) from e
        return Path(pwd)


@dataclass
class Delegator:
    """Delegator runs the build tool with the metarust environment
    and reports back its exit code."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("metarust-cargo"))
    options: DelegatorOptions = field(default_factory=DelegatorOptions)
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)

    @classmethod
    def create(cls, options: DelegatorOptions = DelegatorOptions()) -> Self:
        return cls(options=options)

    def warn_if_sysroot_missing(self) -> bool:
        """Logs a warning if the sysroot variable is missing. The warning is advisory,
        and the return value (whether the sysroot is set) is never used to abort the
        delegation."""
        if sysroot_is_set(self.environ, self.options.sysroot_variable):
            return True
        self.logger.warning("You need to set %s", self.options.sysroot_variable)
        return False

    def launch(self, command: list[str], env: dict[str, str]) -> int:
        """Starts the program and blocks until it exits.

        SIGINT from the terminal reaches both this process and the program;
        the program decides how to react, and this process keeps waiting for it.
        """
        try:
            process = subprocess.Popen(command, env=env)
        except FileNotFoundError as e:
            raise ProgramNotFound(command[0], e) from e
        except OSError as e:
            raise ProgramNotExecutable(command[0], e) from e

        while True:
            try:
                returncode = process.wait()
                break
            except KeyboardInterrupt:
                self.logger.debug("Interrupted, waiting for %s to exit", command[0])

        return exit_code_of(returncode)

    def run(self, args: Sequence[str]) -> int:
        """Runs the delegated program with the provided arguments, unmodified,
        and returns its exit code.

        :py:exc:`~metarust_cargo.errors.WrapperError` is raised if the program
        couldn't be started.
        """
        self.warn_if_sysroot_missing()

        overrides = build_overrides(working_directory(self.environ), self.options)
        for name, value in overrides.items():
            self.logger.debug("%s=%s", name, value)

        command = [self.options.program, *args]
        self.logger.debug("Running %s", shlex.join(command))

        code = self.launch(command, child_environment(self.environ, overrides))
        self.logger.debug("%s exited with %d", self.options.program, code)
        return code
