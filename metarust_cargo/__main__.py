# © Copyright 2022-2024 Mikołaj Kuranowski
# SPDX-License-Identifier: GPL-3.0-or-later

"""A cargo wrapper which sets all the flags and environment required
to build crates for the metarust interpreter.

Every argument is forwarded to cargo as-is::

    METARUST_SYSROOT=... python -m metarust_cargo build --release
"""

import os
import sys
from typing import Sequence

from .delegator import Delegator
from .errors import WrapperError
from .options import DelegatorOptions
from .tools.logs import initialize as initialize_logging


def main(argv: Sequence[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    initialize_logging(verbose=DelegatorOptions.verbose_from_environ(os.environ))

    delegator = Delegator.create()
    try:
        return delegator.run(args)
    except WrapperError as e:
        delegator.logger.error("%s", e)
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
