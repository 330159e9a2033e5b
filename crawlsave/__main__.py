import sys

from crawlsave.cli import main

sys.exit(main())
