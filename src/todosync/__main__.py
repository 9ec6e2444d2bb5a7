"""Allow running todosync as `python -m todosync`."""

from todosync.cli import cli_main

if __name__ == "__main__":
    cli_main()
