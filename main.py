"""
Entrypoint: download and convert the extensions given on the command line.

    python main.py https://chromewebstore.google.com/detail/<name>/<id> [-v 114.0.5735.133]
"""

import sys

from crxfetch.main import main


if __name__ == "__main__":
    sys.exit(main())
