"""Entry point for python -m drivescan."""

from drivescan.cli import main

if __name__ == "__main__":
    main()
