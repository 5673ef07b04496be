"""Entry point for 'python -m rowsandbox' command."""

from rowsandbox.cli import main

if __name__ == "__main__":
    main()
