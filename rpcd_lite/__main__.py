"""
rpcd entry point for direct execution.
Usage: python3 -m rpcd_lite
"""

import sys
from .app import main

if __name__ == "__main__":
    sys.exit(main())
