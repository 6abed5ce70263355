"""
Clients for the external systems (Odoo, PrestaShop).
"""
