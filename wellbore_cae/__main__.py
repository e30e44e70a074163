import sys

from wellbore_cae.cli import main

sys.exit(main())
