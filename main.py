#!/usr/bin/env python3
"""
Fib-Wave Engine - Main Entry Point

Replays historical bars through the streaming pivot / Fibonacci / wave
engine and reports scenarios, draw events and alert signals.

Usage:
    python main.py replay --data test.csv
    python main.py replay --data test.csv --pivot-length 3 --min-range 0.5
    python main.py replay --data test.csv --events-out events.json --checkpoint-out state.json
"""

if __name__ == "__main__":
    from src.cli.main import main
    main()
