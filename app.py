#!/usr/bin/env python3
"""
Token Event Notifier - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
This is the ONE executable entry point for the notifier.

- Compatible with PM2 process management
- Can be started, stopped, and restarted safely
- Handles SIGINT / SIGTERM gracefully (exit 0)
- Exits 1 on startup failure or an unexpected loop fault

============================================================
USAGE
============================================================
Direct execution:
    python app.py

With PM2:
    pm2 start app.py --interpreter python --name token-notifier

Environment-based configuration (.env is loaded automatically):
    POLL_INTERVAL=10000 python app.py

============================================================
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.absolute()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from orchestrator.cli import main


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
