"""Module entrypoint for ``python -m lazydocs``."""

from .cli import main


if __name__ == "__main__":
    main()
