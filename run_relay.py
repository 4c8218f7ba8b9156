#!/usr/bin/env python3
"""
Call Relay Runner.

Convenience script to run the relay from a source checkout.

Usage:
    python run_relay.py

Or, once installed:
    python -m call_relay
"""

import asyncio
import os
import sys

# Add python directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'python'))

if __name__ == "__main__":
    from call_relay.__main__ import main
    asyncio.run(main())
