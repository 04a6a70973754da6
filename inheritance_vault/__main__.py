"""Allow running the package as a module: python -m inheritance_vault"""

import sys

from inheritance_vault.cli import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
