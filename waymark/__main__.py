"""Module entrypoint for ``python -m waymark``.

All argument parsing happens in ``waymark.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
