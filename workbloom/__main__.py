"""Allow ``python -m workbloom``."""

import sys

from workbloom.cli.main import main

sys.exit(main())
