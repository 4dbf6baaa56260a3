"""
Demo reference data: menu templates, banks, phone codes.
"""

from partela.data.menu_items import (
    MenuItemTemplate,
    DISHES,
    DRINKS,
    DESSERTS,
    ALL_MENU_ITEMS,
    VENEZUELAN_BANKS,
    PHONE_CODES,
    ID_TYPES,
)

__all__ = [
    "MenuItemTemplate",
    "DISHES",
    "DRINKS",
    "DESSERTS",
    "ALL_MENU_ITEMS",
    "VENEZUELAN_BANKS",
    "PHONE_CODES",
    "ID_TYPES",
]
