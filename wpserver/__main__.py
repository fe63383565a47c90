#!/usr/bin/env python3
"""
Entry point for the wpserver command.
"""

import sys
import click
from .cli.commands import cli


def main():
    """Run the CLI, turning interrupts and unexpected errors into exit status 1."""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\nOperation cancelled by user.", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"\nUnexpected error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
