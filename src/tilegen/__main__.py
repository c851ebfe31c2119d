"""Entry point for ``python -m tilegen``."""

import sys

from tilegen.pyramid.__main__ import main

if __name__ == "__main__":
    sys.exit(main())
