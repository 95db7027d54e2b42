#!/usr/bin/env python3
"""
GenieACS Database Restore - Main Entry Point

This script is a wrapper for the restore system located in genieacs_restore/restore/
"""

import sys
from genieacs_restore.restore.__main__ import main

if __name__ == '__main__':
    sys.exit(main())
