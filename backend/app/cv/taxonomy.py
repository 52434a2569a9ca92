"""
Garment Taxonomy

Closed vocabularies produced by the classifier and stored on catalog items.
Values are the display strings used on the wire, in CSV exports and in
JSON backups.
"""
from enum import Enum


class ClothingType(str, Enum):
    """Garment categories."""
    SHIRT = "Shirt"
    PANTS = "Pants"
    JACKET = "Jacket"
    DRESS = "Dress"
    SKIRT = "Skirt"
    SHORTS = "Shorts"
    SWEATER = "Sweater"
    HOODIE = "Hoodie"
    JEANS = "Jeans"
    BLAZER = "Blazer"
    T_SHIRT = "T-Shirt"
    BLOUSE = "Blouse"
    COAT = "Coat"
    VEST = "Vest"
    CARDIGAN = "Cardigan"
    UNKNOWN = "Unknown"


class ClothingMaterial(str, Enum):
    """Fabric categories."""
    COTTON = "Cotton"
    POLYESTER = "Polyester"
    WOOL = "Wool"
    SILK = "Silk"
    LINEN = "Linen"
    DENIM = "Denim"
    LEATHER = "Leather"
    CASHMERE = "Cashmere"
    RAYON = "Rayon"
    NYLON = "Nylon"
    SPANDEX = "Spandex"
    ACRYLIC = "Acrylic"
    VELVET = "Velvet"
    CORDUROY = "Corduroy"
    FLANNEL = "Flannel"
    JERSEY = "Jersey"
    UNKNOWN = "Unknown"


UNKNOWN_COLOR = "Unknown"
