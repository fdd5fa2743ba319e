"""
Static product catalogue used by the upholstery order form:
caravan models with their type codes, and sample brands with their colours.
"""

BRAND_COLORS = {
    "Shann": [
        "Ash",
        "Black",
        "Charcoal",
        "Chocolate",
        "Cream",
        "Grey",
        "Navy",
        "Stone",
        "Tan",
    ],
}

BRANDS = list(BRAND_COLORS)

# (model name, [(type name, type code), ...])
MODELS = [
    ("Cape Otway", [
        ('Cape Otway 16" SA', "1007"),
        ('Cape Otway 17" SA', "1019"),
        ('Cape Otway 18.6" SA', "1010"),
        ('Cape Otway 18.6"', "1012"),
        ('Cape Otway 18.6" EL', "1012 EL"),
        ('Cape Otway 18.6" VX Extreme', "1012"),
        ('Cape Otway 19.6"', "1001"),
        ('Cape Otway 20.5" Standard', "1009"),
        ('Cape Otway 20.5" Premium', "1022"),
    ]),
    ("Barrington", [
        ('Barrington 21"', "1002"),
        ('Barrington 21.5" GT', "1017"),
        ('Barrington 21.5" XLI', "1016"),
        ('Barrington 22"', "1004"),
        ('Barrington Club 22.5"', "1018"),
        ('Barrington Quad 23"', "1025"),
    ]),
    ("Opulance", [
        ('Opulance 22"', "1005 A"),
        ('Opulance 22"', "1005 B"),
        ('Opulance 22"', "1005 C"),
        ('Opulance 22"', "1005 D"),
    ]),
    ("Voyager", [
        ('Voyager 19.6"', "1014"),
    ]),
]


def get_models():
    """Models in display order, each with its types."""
    return [
        {
            "name": name,
            "types": [{"name": type_name, "code": code} for type_name, code in types],
        }
        for name, types in MODELS
    ]


def get_brand_colors(brand):
    """Colours offered for a sample brand; empty for unknown brands."""
    return list(BRAND_COLORS.get(brand, []))


def get_catalog():
    return {
        "models": get_models(),
        "brands": BRANDS,
        "brandColors": {brand: get_brand_colors(brand) for brand in BRANDS},
    }
