import sys

from dataingest.cli import main

sys.exit(main())
