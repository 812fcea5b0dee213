#!/usr/bin/env python3
"""craftboot entry point"""

import sys

from craftboot.cli import main

if __name__ == "__main__":
    sys.exit(main())
