import sys

from tstream.cli import main

sys.exit(main())
