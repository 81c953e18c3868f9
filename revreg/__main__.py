import sys

from revreg.cli import main

sys.exit(main())
