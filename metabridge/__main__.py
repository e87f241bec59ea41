import sys

from metabridge.cli import main

sys.exit(main())
