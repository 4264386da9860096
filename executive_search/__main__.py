import sys

from executive_search.cli import main

sys.exit(main())
