"""
Entry point for running Synapse as a module.

Usage:
    python -m synapse due 1
    python -m synapse review 3 4
    python -m synapse --help
"""
from .cli import main

if __name__ == "__main__":
    main()
