"""Allow running the CLI as `python -m mbctl.cli`."""

from .main import main

if __name__ == "__main__":
    main()
