# main.py
import sys

from kalon_explorer.cli.cli import main

if __name__ == "__main__":
    sys.exit(main())
