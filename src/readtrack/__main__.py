"""Main entry point for ``python -m readtrack``."""

from readtrack.cli import app


def main():
    """Run the readtrack CLI."""
    app()


if __name__ == "__main__":
    main()
