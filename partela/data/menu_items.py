"""
Demo menu for the UPTOWN restaurant.

Venezuelan and international dishes, drinks and desserts. New guests get
a random order built from these templates (see services/demo_data.py).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Final

from shared.config.constants import ItemCategory, PaymentFormat


@dataclass(frozen=True)
class MenuItemTemplate:
    name: str
    description: str
    category: ItemCategory
    price: Decimal
    emoji: str
    image_url: str | None = None


def _dish(name: str, description: str, price: str, emoji: str) -> MenuItemTemplate:
    return MenuItemTemplate(name, description, ItemCategory.DISH, Decimal(price), emoji)


def _drink(name: str, description: str, price: str, emoji: str) -> MenuItemTemplate:
    return MenuItemTemplate(name, description, ItemCategory.DRINK, Decimal(price), emoji)


def _dessert(name: str, description: str, price: str, emoji: str) -> MenuItemTemplate:
    return MenuItemTemplate(name, description, ItemCategory.DESSERT, Decimal(price), emoji)


# =============================================================================
# Dishes
# =============================================================================

DISHES: Final[tuple[MenuItemTemplate, ...]] = (
    _dish("Tequeños Artesanales", "8 unidades con salsa de ajo", "18.50", "🧀"),
    _dish("Arepa Reina Pepiada", "Pollo, aguacate y mayonesa", "22.00", "🫓"),
    _dish("Pabellón Criollo", "Carne mechada, caraotas, arroz y tajadas", "35.00", "🍛"),
    _dish("Cachapa con Queso", "Cachapa tradicional con queso de mano", "28.00", "🥞"),
    _dish("Hamburguesa Gourmet", "200g de carne, bacon y queso cheddar", "32.00", "🍔"),
    _dish("Sushi Roll Especial", "8 piezas con salmón y aguacate", "45.00", "🍣"),
    _dish("Pizza Margherita", "Tomate, mozzarella y albahaca", "38.00", "🍕"),
    _dish("Ensalada César", "Lechuga, pollo, parmesano y crutones", "24.00", "🥗"),
    _dish("Empanadas de Carne", "3 unidades con guasacaca", "15.00", "🥟"),
    _dish("Pasta Carbonara", "Espagueti con bacon, huevo y parmesano", "29.00", "🍝"),
)

# =============================================================================
# Drinks
# =============================================================================

DRINKS: Final[tuple[MenuItemTemplate, ...]] = (
    _drink("Limonada de Panela", "Refrescante y natural", "8.00", "🍋"),
    _drink("Cerveza Artesanal", "IPA local 330ml", "12.00", "🍺"),
    _drink("Copa de Vino Tinto", "Malbec argentino", "18.00", "🍷"),
    _drink("Café Espresso", "Doble shot", "6.00", "☕"),
    _drink("Mojito Clásico", "Ron, menta, limón y soda", "15.00", "🍹"),
    _drink("Agua Mineral", "500ml", "4.00", "💧"),
    _drink("Jugo de Parchita", "Natural sin azúcar añadida", "10.00", "🧃"),
    _drink("Piña Colada", "Ron, coco y piña", "16.00", "🍍"),
    _drink("Té Helado", "Té negro con limón", "7.00", "🧊"),
    _drink("Sangría", "Copa de sangría de la casa", "14.00", "🍇"),
)

# =============================================================================
# Desserts
# =============================================================================

DESSERTS: Final[tuple[MenuItemTemplate, ...]] = (
    _dessert("Quesillo", "Postre tradicional venezolano", "14.00", "🍮"),
    _dessert("Brownie con Helado", "Chocolate belga con helado de vainilla", "16.00", "🍫"),
    _dessert("Tiramisú", "Receta italiana original", "18.00", "🍰"),
    _dessert("Tres Leches", "Bizcocho bañado en tres leches", "15.00", "🥛"),
    _dessert("Helado Artesanal", "2 bolas, sabor a elección", "12.00", "🍨"),
    _dessert("Cheesecake", "New York style con frutos rojos", "17.00", "🧁"),
)

ALL_MENU_ITEMS: Final[tuple[MenuItemTemplate, ...]] = DISHES + DRINKS + DESSERTS


# =============================================================================
# Mobile payment reference data
# =============================================================================

VENEZUELAN_BANKS: Final[tuple[str, ...]] = (
    "Banesco",
    "Mercantil",
    "Provincial",
    "Venezuela",
    "Banco del Tesoro",
    "Bicentenario",
    "BOD",
    "Exterior",
    "BNC",
    "Bancrecer",
    "Banco Plaza",
    "Banco Activo",
    "Banco Caroní",
    "Bancamiga",
)

PHONE_CODES: Final[tuple[str, ...]] = tuple(sorted(PaymentFormat.PHONE_CODES))
ID_TYPES: Final[tuple[str, ...]] = tuple(sorted(PaymentFormat.ID_TYPES))
