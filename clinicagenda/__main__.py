"""
Convenience entry point for running clinicagenda directly.

Usage: python -m clinicagenda [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
