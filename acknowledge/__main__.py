import sys

from acknowledge.cli import main

sys.exit(main())
