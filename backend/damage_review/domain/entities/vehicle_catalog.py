"""Reference data for vehicle sections, parts, damage locations and types.

Section ids and part names stay free-form strings: the catalog gives the
review order and form options, but data with unknown keys is still reviewed
(ordered after the known sections).
"""
from typing import Dict, Iterable, List


SECTION_PARTS: Dict[str, List[str]] = {
    "exterior": [
        "Front Bumper",
        "Rear Bumper",
        "Rear Quarter Panel",
    ],
    "exterior-body": [
        "Hood",
        "Roof",
        "Driver Side Door",
        "Passenger Side Door",
        "Front Left Door",
        "Front Right Door",
        "Rear Left Door",
        "Rear Right Door",
        "Front Left Fender",
        "Front Right Fender",
        "Rear Left Quarter Panel",
        "Rear Right Quarter Panel",
        "Trunk/Tailgate",
        "Grille",
        "Rocker Panel Left",
        "Rocker Panel Right",
    ],
    "tires": [
        "Front Left Tire",
        "Front Right Tire",
        "Rear Left Tire",
        "Rear Right Tire",
        "Spare Tire",
    ],
    "rims": [
        "Front Left Rim",
        "Front Right Rim",
        "Rear Left Rim",
        "Rear Right Rim",
    ],
    "glazing": [
        "Windshield",
        "Rear Window",
        "Front Left Window",
        "Front Right Window",
        "Rear Left Window",
        "Rear Right Window",
        "Sunroof",
        "Left Mirror",
        "Right Mirror",
        "Rear View Mirror",
    ],
    "interior": [
        "Front Left Seat",
        "Front Right Seat",
        "Rear Left Seat",
        "Rear Right Seat",
        "Dashboard",
        "Dashboard Lights",
        "Steering Wheel",
        "Center Console",
        "Door Panels",
        "Headliner",
        "Carpet",
        "Trunk Interior",
    ],
    "motor": [
        "Engine Block",
        "Radiator",
        "Battery",
        "Air Filter",
        "Oil System",
        "Coolant System",
        "Belts",
        "Hoses",
        "Spark Plugs",
        "Transmission",
    ],
}

SECTION_NAMES: Dict[str, str] = {
    "exterior": "Exterior",
    "exterior-body": "Body Panels",
    "rims": "Rims",
    "tires": "Tires",
    "glazing": "Glass & Mirrors",
    "interior": "Interior",
    "motor": "Engine & Motor",
}

DAMAGE_LOCATIONS: List[str] = [
    "Front",
    "Rear",
    "Left",
    "Right",
    "Top",
    "Bottom",
    "Center",
    "Front Left",
    "Front Right",
    "Rear Left",
    "Rear Right",
    "Upper Left",
    "Upper Right",
    "Lower Left",
    "Lower Right",
    "Edge",
    "Corner",
]

DAMAGE_TYPES: Dict[str, List[str]] = {
    "body": ["Scratch", "Dent", "Chip", "Crack", "Rust", "Paint Damage", "Missing Part", "Deformation", "Hole", "Corrosion"],
    "rim": ["Curb Rash", "Bent", "Crack", "Corrosion", "Missing Center Cap", "Scratch"],
    "tire": ["Tread Wear", "Sidewall Damage", "Bulge", "Cut", "Puncture", "Dry Rot", "Uneven Wear", "Exposed Cord"],
    "glass": ["Chip", "Crack", "Shattered", "Scratch", "Delamination", "Missing"],
    "interior": ["Tear", "Stain", "Burn", "Wear", "Missing Component", "Broken", "Crack", "Discoloration"],
    "motor": ["Leak", "Corrosion", "Wear", "Crack", "Missing Component", "Damage", "Malfunction"],
}

_SECTION_DAMAGE_CATEGORY: Dict[str, str] = {
    "exterior": "body",
    "exterior-body": "body",
    "rims": "rim",
    "tires": "tire",
    "glazing": "glass",
    "interior": "interior",
    "motor": "motor",
}


def section_name(section_id: str) -> str:
    return SECTION_NAMES.get(section_id, section_id)


def damage_types_for_section(section_id: str) -> List[str]:
    return DAMAGE_TYPES[_SECTION_DAMAGE_CATEGORY.get(section_id, "body")]


def ordered_section_ids(section_ids: Iterable[str]) -> List[str]:
    """Known sections in catalog order, then unknown ones in first-seen order."""
    seen: List[str] = []
    for section_id in section_ids:
        if section_id not in seen:
            seen.append(section_id)
    known = [s for s in SECTION_PARTS if s in seen]
    return known + [s for s in seen if s not in SECTION_PARTS]
