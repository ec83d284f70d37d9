"""
Entry point for running converge_migrator as a module.

Usage: python -m converge_migrator [args]
"""

from converge_migrator.cli import main

if __name__ == "__main__":
    main()
