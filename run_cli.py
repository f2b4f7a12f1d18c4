"""Run the roster CLI from a source checkout: python run_cli.py show -b keyvalue."""

from cli.cli import app

if __name__ == "__main__":
    app()
