"""Module entrypoint for ``python -m treedeck``."""

from .cli import main


if __name__ == "__main__":
    main()
