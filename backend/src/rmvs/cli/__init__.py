"""CLI entry points for RMVS.

Provides command-line tools for:
- Running individual checks
- Verifying single suggestions and submission batches
- Periodic re-verification
"""

import click

from .. import __version__
from .verify import cli as verify_cli


@click.group()
@click.version_option(version=__version__, prog_name="rmvs")
def main():
    """RMVS - Resource Map Verification System.

    Command-line tools for verifying community resource suggestions.
    """
    pass


main.add_command(verify_cli, name="verify")


if __name__ == "__main__":
    main()
