"""Package entry point for ``python -m teleprompter``.

WHY: Operators run the service as ``python -m teleprompter serve`` and
preview a script locally with ``python -m teleprompter preview file.txt``.

HOW: Delegates to the CLI's main() function.
"""

from teleprompter.cli import main

if __name__ == "__main__":
    main()
