#!/usr/bin/env python3
"""
Simple main entry point for the Open Buildings band exporter.
"""

import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent / "src"))

from buildings_export.core import main

if __name__ == "__main__":
    sys.exit(main())
