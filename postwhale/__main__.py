"""Entry point for ``python -m postwhale``."""

from postwhale.cli.commands import app

if __name__ == "__main__":
    app()
