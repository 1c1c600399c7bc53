"""Allow running the package as ``python -m pagecomposer``."""

import sys

from pagecomposer import main

sys.exit(main())
