"""Entry point for running the upgrade CLI as a module.

Usage:
    python -m dbupgrade upgrade --database app.db --scripts-dir sql
    python -m dbupgrade status
"""

from .cli import main

if __name__ == "__main__":
    main()
