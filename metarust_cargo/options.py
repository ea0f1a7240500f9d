# © Copyright 2022-2024 Mikołaj Kuranowski
# SPDX-License-Identifier: GPL-3.0-or-later

from dataclasses import dataclass
from typing import Mapping

VERBOSE_VARIABLE = "METARUST_CARGO_VERBOSE"


@dataclass(frozen=True)
class DelegatorOptions:
    """DelegatorOptions control the behavior of :py:class:`~metarust_cargo.Delegator`.

    The command-line wrapper always uses the defaults; those are not exposed as flags,
    as every argument is forwarded to cargo.
    """

    program: str = "cargo"
    """program is the delegated build tool, resolved through ``PATH``."""

    rustflags: str = "-Z always-encode-mir"
    """rustflags is exported as ``RUSTFLAGS``. MIR of every crate must be encoded
    in the metadata, so that the interpreter can load dependencies."""

    rust_backtrace: str = "full"
    """rust_backtrace is exported as ``RUST_BACKTRACE``."""

    marker: str = "1"
    """marker is exported as ``METARUST``."""

    rustc: str = "../metarust/build/x86_64-unknown-linux-gnu/stage1/bin/rustc"
    """rustc is exported as ``RUSTC``, pointing cargo at the stage1 compiler
    built in a sibling ``metarust`` checkout. The path is relative and is passed
    through unchanged - cargo resolves it against its own working directory.
    """

    deps_subpath: str = "target/debug/deps"
    """deps_subpath is appended to the current working directory and exported
    as ``METARUST_DEPS``."""

    sysroot_variable: str = "METARUST_SYSROOT"
    """sysroot_variable names the environment variable which must be provided
    by the caller. Its absence only causes a warning."""

    @staticmethod
    def verbose_from_environ(environ: Mapping[str, str]) -> bool:
        """Checks whether DEBUG logging was requested through ``METARUST_CARGO_VERBOSE``.

        >>> DelegatorOptions.verbose_from_environ({})
        False
        >>> DelegatorOptions.verbose_from_environ({"METARUST_CARGO_VERBOSE": "0"})
        False
        >>> DelegatorOptions.verbose_from_environ({"METARUST_CARGO_VERBOSE": "yes"})
        True
        """
        value = environ.get(VERBOSE_VARIABLE, "")
        return value not in ("", "0")
