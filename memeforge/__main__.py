"""Allow running the command line with ``python -m memeforge``."""
import sys

from .main import main

sys.exit(main())
