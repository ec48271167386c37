"""Package entry point for ``python -m whisper_converter``.

WHY: Users run the converter as ``python -m whisper_converter --input ...``
without installing the console script.
"""

from whisper_converter.cli import main

if __name__ == "__main__":
    main()
