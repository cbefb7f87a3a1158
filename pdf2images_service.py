"""CLI shim -- delegates to pdf2images.cli.main().

Usage:
    python pdf2images_service.py --once --source-dir ./drawings
    python pdf2images_service.py            # service mode, every 2 hours
"""

import sys

from pdf2images.cli import main

if __name__ == "__main__":
    sys.exit(main())
