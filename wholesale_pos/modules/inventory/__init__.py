# wholesale_pos/modules/inventory/__init__.py
"""
Inventory display models (PySide6).

Import from .model directly; the package itself stays Qt-free so the
repositories can be used headless.
"""
