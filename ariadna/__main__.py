import sys

from ariadna.cli import main

sys.exit(main())
