"""Allow ``python -m py_sched``."""

import sys

from py_sched.cli import main

sys.exit(main())
