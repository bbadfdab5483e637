"""Package entry point for ``python -m captionburn``.

Delegates to the CLI's main(); ``python -m captionburn serve`` starts the
HTTP API.
"""

import sys

from captionburn.cli import main

if __name__ == "__main__":
    sys.exit(main())
