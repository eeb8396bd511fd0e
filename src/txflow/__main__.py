"""Run the txflow CLI: python -m txflow."""

import sys

from txflow.cli import main

if __name__ == "__main__":
    sys.exit(main())
