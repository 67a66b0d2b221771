"""CLI commands for logship.

Example:
    $ logship check-config
    $ logship emit "Hello from logship" --with-span
    $ logship fingerprint collector.pem
"""

from logship.cli.main import check_config, cli, emit, fingerprint

__all__ = ["check_config", "cli", "emit", "fingerprint"]
