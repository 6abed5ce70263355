"""
Shared helpers: SKU text, tree search, locks and local files.
"""
