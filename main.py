#!/usr/bin/env python3
"""busbooker entry point."""

from __future__ import annotations

from busbooker.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
