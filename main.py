#!/usr/bin/env python3
"""
Main Entry Point

Background call analysis worker.
"""

from analysis_worker.main import main

if __name__ == "__main__":
    raise SystemExit(main())
