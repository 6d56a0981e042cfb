import sys

from mooseserve.cli import main

sys.exit(main())
