#!/usr/bin/env python3
"""snaptracker - minimal BitTorrent HTTP tracker."""

from __future__ import annotations

from snaptracker.cli.main import main

if __name__ == "__main__":
    main()
