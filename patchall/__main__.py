import sys

from patchall.cli import main

sys.exit(main())
