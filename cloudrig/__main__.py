import sys

from cloudrig.cli import main

sys.exit(main())
