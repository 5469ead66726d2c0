"""
Main entry point for modbundler.

Usage: python -m modbundler <command> [options]
"""

from modbundler.cli.commands import cli


def main():
    """Main entry point for the modbundler CLI."""
    cli()


if __name__ == "__main__":
    main()
