"""
Test suite for the Odoo ⇄ PrestaShop sync.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_sync_pipeline.py -v
"""
