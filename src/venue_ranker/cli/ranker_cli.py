#!/usr/bin/env python3
"""CLI entry point for the venue-rank command.

Ranks publications by CORE conference rank and SJR journal quartile.
"""

import sys


def main() -> None:
    """Entry point for venue-rank command."""
    from venue_ranker.ranker import main as ranker_main

    sys.exit(ranker_main())


if __name__ == "__main__":
    main()
