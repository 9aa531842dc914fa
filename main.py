"""Main entry point for the quizstreak CLI."""

from quizstreak.cli.app import app


def main():
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    main()
