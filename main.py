#!/usr/bin/env python3
"""
FeedEnricher - Concurrent Feed Enrichment
=========================================

Main application entry point.

Usage:
    python main.py --help                    # Show all commands
    python main.py parse URL                 # Enrich every item of a feed
    python main.py check-config              # Show effective configuration
"""

import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from feedenricher.cli import main


if __name__ == "__main__":
    main()
