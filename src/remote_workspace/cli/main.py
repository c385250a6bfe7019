"""Remote workspace CLI entry point"""

import click

from .command.start import start
from .command.stop import stop


@click.group(
    name="remote-workspace",
    help="Remote workspace daemon - files, terminals and tasks for a browser IDE",
)
def main():
    """Main CLI entry point"""
    pass

# Register commands
main.add_command(start)
main.add_command(stop)

if __name__ == "__main__":
    main()
