from app.models import ServiceCategory

SERVICE_CATEGORIES = [
    {
        "name": "Hair Salon",
        "slug": "hair",
        "description": "Hair cutting, styling, and coloring services",
        "icon": "scissors",
        "color": "#FF5733",
    },
    {
        "name": "Barber",
        "slug": "barber",
        "description": "Men's grooming and shaving services",
        "icon": "user",
        "color": "#33FF57",
    },
    {
        "name": "Nails",
        "slug": "nails",
        "description": "Manicure and pedicure services",
        "icon": "hand",
        "color": "#3357FF",
    },
    {
        "name": "Massage",
        "slug": "massage",
        "description": "Therapeutic and relaxing massage services",
        "icon": "heart",
        "color": "#FF33A1",
    },
    {
        "name": "Skincare",
        "slug": "skincare",
        "description": "Facials and skin treatments",
        "icon": "sparkles",
        "color": "#33FFF5",
    },
]


def seed_service_categories(session):
    """Upsert the standard categories by slug. Returns the number inserted."""
    inserted = 0
    for entry in SERVICE_CATEGORIES:
        category = (
            session.query(ServiceCategory)
            .filter(ServiceCategory.slug == entry["slug"])
            .first()
        )
        if category is None:
            category = ServiceCategory(slug=entry["slug"], is_active=True)
            session.add(category)
            inserted += 1
        category.name = entry["name"]
        category.description = entry["description"]
        category.icon = entry["icon"]
        category.color = entry["color"]
    session.commit()
    return inserted
