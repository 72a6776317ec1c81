import sys

from stitchbox.cli import main

sys.exit(main())
