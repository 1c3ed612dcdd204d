"""Allow ``python -m goupdater``."""

import sys

from goupdater._cli import main

sys.exit(main())
