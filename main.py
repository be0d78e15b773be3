#!/usr/bin/env python3
"""
vgif - Main Entry Point
Create optimized, optionally seamlessly looping GIFs from online or local videos
"""

import sys

# Force UTF-8 encoding for console output
if sys.platform.startswith('win'):
    for stream in (sys.stdout, sys.stderr):
        if hasattr(stream, 'reconfigure'):
            stream.reconfigure(encoding='utf-8')

from vgif.cli import main

if __name__ == '__main__':
    main()
