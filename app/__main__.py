"""
Entry point for running the exam digitizer CLI: python -m app
"""

import sys

from app.cli import main

if __name__ == "__main__":
    sys.exit(main())
