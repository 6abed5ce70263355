"""
Cron: sync Odoo products (price and quantity) to PrestaShop.

Usage:
    python scripts/cron_product_sync.py --range=2d --dryrun=true
"""

import os
import sys

# Allow imports from the project root when running as a script
_root_dir = os.path.join(os.path.dirname(__file__), "..")
sys.path.insert(0, _root_dir)

from dotenv import load_dotenv
load_dotenv(os.path.join(_root_dir, ".env"))

from services.cron_service import main_product


if __name__ == "__main__":
    main_product()
