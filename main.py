#!/usr/bin/env python
"""
Modal Model Updating - Main Entry Point
=======================================

Runs the analyses of a project file.

Usage:
------
    python main.py modal --config config/update.yaml
    python main.py update --config config/update.yaml --output-dir outputs

For detailed usage, run:
    python main.py --help
"""

import sys

from modelupdate.cli import main


if __name__ == "__main__":
    sys.exit(main())
