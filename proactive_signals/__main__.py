import sys

from proactive_signals.cli import main

sys.exit(main())
