from __future__ import annotations

import sys

from .indexer_app import StateExpiryIndexerApp


def main() -> None:
    app = StateExpiryIndexerApp()
    exit_code = app.start()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
