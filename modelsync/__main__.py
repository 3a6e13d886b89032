"""Allow running modelsync with ``python -m modelsync``."""

from modelsync.cli.cli import main

if __name__ == "__main__":
    main()
