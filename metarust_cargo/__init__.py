# © Copyright 2022-2024 Mikołaj Kuranowski
# SPDX-License-Identifier: GPL-3.0-or-later

from . import errors, interp, tools
from .delegator import Delegator, build_overrides, child_environment, sysroot_is_set
from .options import DelegatorOptions
from .tools.logs import initialize as initialize_logging

__all__ = [
    "errors",
    "interp",
    "tools",
    "Delegator",
    "DelegatorOptions",
    "build_overrides",
    "child_environment",
    "initialize_logging",
    "sysroot_is_set",
]

__name__ = "metarust_cargo"
__version__ = "0.1.0"
