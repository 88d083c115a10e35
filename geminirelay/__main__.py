"""
Entry point for running gemini-relay as a module: python -m geminirelay
"""

from geminirelay.cli.commands import app

if __name__ == "__main__":
    app()
