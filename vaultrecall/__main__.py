"""Entry point for `python -m vaultrecall`."""

from vaultrecall.cli.commands import app

if __name__ == "__main__":
    app()
