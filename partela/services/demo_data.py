"""
Demo data generation.

New guests arrive with a random order drawn from the demo menu. The
registry consumes `generate_guest_items` as a plain factory, so tests can
inject a deterministic one instead.
"""

import random
import uuid

from shared.config.constants import DemoData
from partela.data.menu_items import DESSERTS, DISHES, DRINKS, MenuItemTemplate
from partela.models import MenuItem


def create_menu_item(template: MenuItemTemplate) -> MenuItem:
    """Fresh MenuItem (new id, quantity 1) from a template."""
    return MenuItem(
        id=str(uuid.uuid4()),
        name=template.name,
        description=template.description,
        category=template.category,
        price=template.price,
        quantity=1,
        emoji=template.emoji,
        image_url=template.image_url,
    )


def generate_guest_items(rng: random.Random | None = None) -> list[MenuItem]:
    """
    Random order for a new guest.

    Between 1 and 3 items: always one dish, a drink when there are at least
    two, and a dessert or a second drink when there are three. A name
    never appears twice; a repeated pick is dropped rather than redrawn.
    """
    rng = rng or random
    item_count = rng.randint(DemoData.MIN_ITEMS_PER_GUEST, DemoData.MAX_ITEMS_PER_GUEST)

    main_dish = rng.choice(DISHES)
    templates = [main_dish]
    used_names = {main_dish.name}

    if item_count >= 2:
        drink = rng.choice(DRINKS)
        if drink.name not in used_names:
            templates.append(drink)
            used_names.add(drink.name)

    if item_count >= 3:
        extra = rng.choice(DESSERTS) if rng.random() > 0.5 else rng.choice(DRINKS)
        if extra.name not in used_names:
            templates.append(extra)
            used_names.add(extra.name)

    return [create_menu_item(t) for t in templates]


def generate_guest_name(index: int) -> str:
    """Display name from a zero-based join position."""
    return f"Comensal {index + 1}"


def generate_table_id(rng: random.Random | None = None) -> str:
    """Short, human-shareable table code, e.g. MESA-A7B3."""
    rng = rng or random
    suffix = "".join(
        rng.choice(DemoData.TABLE_ID_ALPHABET) for _ in range(DemoData.TABLE_ID_LENGTH)
    )
    return f"{DemoData.TABLE_ID_PREFIX}{suffix}"
