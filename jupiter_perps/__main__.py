import sys

from jupiter_perps.cli import main

sys.exit(main())
