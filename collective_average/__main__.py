import sys

from collective_average.cli import main

sys.exit(main())
