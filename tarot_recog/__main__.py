"""
tarot_recog/__main__.py: Entry point for running CLI as module
Allows: python -m tarot_recog <command>
"""

from tarot_recog.cli.main import cli

if __name__ == '__main__':
    cli()
