#!/usr/bin/env python3
"""Apply or revert schema migrations at deploy time.

    python migrate.py upgrade [target]
    python migrate.py downgrade
    python migrate.py status
"""

from __future__ import annotations

from app.migration_runner import main


if __name__ == "__main__":
    raise SystemExit(main())
