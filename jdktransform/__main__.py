import sys

from jdktransform.cli import main

sys.exit(main())
