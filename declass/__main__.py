"""
Declass Module Entry Point
==========================

Allows running the Declass CLI via: python -m declass
"""

from declass.cli import main

if __name__ == "__main__":
    main()
