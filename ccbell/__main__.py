import sys

from ccbell.cli import main

sys.exit(main())
