#!/usr/bin/env python3
"""
Trading Ledger Entry Point

Starts the FastAPI server with the trading ledger.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from trading_ledger.api import run_server
from trading_ledger.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Trading Ledger...")
    print(f"Storage: {'SQLite ' + config.database_path if config.use_sqlite else 'in-memory'}")
    print(f"Default favored side: {config.default_favored_side}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server()
    except KeyboardInterrupt:
        print("\nShutting down Trading Ledger...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
