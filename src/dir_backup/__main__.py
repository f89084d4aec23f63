"""dir-backup: dir_backup/__main__.py
Entry point for ``python -m dir_backup``.
"""

import sys

from .cli.dispatcher import main

if __name__ == "__main__":
    sys.exit(main())
