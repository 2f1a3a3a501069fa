import sys

from er_triage.cli import main

sys.exit(main())
