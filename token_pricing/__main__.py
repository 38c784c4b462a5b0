import sys

from token_pricing.cli import main


sys.exit(main())
