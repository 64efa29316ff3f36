"""Entry point for running GitMind as a module.

Usage:
    python -m gitmind [command] [options]

Example:
    python -m gitmind analyze https://github.com/pallets/flask
    python -m gitmind check
"""

from gitmind.cli import app

if __name__ == "__main__":
    app()
