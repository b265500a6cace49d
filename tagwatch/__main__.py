"""Allow running as ``python -m tagwatch``."""

import sys

from .cli import main

sys.exit(main())
