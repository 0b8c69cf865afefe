"""Allow ``python -m lcovgate``."""

from lcovgate.cli import cli

if __name__ == "__main__":
    cli()
