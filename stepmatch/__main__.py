#!/usr/bin/env python3
"""
stepmatch entry point for running as a module: python3 -m stepmatch
"""

import sys
from stepmatch.cli import main

if __name__ == '__main__':
    sys.exit(main())
