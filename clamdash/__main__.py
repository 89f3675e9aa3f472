import sys

from clamdash.cli import main

sys.exit(main())
