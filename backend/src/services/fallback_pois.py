"""Well-known Rhodes stops served when no other tier can produce a result."""

from __future__ import annotations

import copy
from typing import Any, Dict, List


def _poi(
    poi_id: str,
    name: str,
    poi_type: str,
    lat: float,
    lng: float,
    address: str,
    description: str,
    hours: str,
    price: str,
    rating: float,
    highlights: List[str],
    tips: List[str],
) -> Dict[str, Any]:
    return {
        "id": poi_id,
        "place_id": poi_id,
        "name": name,
        "type": poi_type,
        "secondary_types": [],
        "latitude": lat,
        "longitude": lng,
        "address": address,
        "rating": rating,
        "price_level": None,
        "phone": None,
        "website": None,
        "description": description,
        "highlights": highlights,
        "local_tips": tips,
        "amenities": [],
        "tags": [],
        "distance_meters": None,
        "aiScore": None,
        "location": {"address": address, "coordinates": {"lat": lat, "lng": lng}},
        "details": {"openingHours": hours, "priceRange": price, "rating": str(rating)},
    }


DEFAULT_FALLBACK_POIS: List[Dict[str, Any]] = [
    _poi(
        "fallback-rhodes-old-town",
        "Rhodes Old Town",
        "historical_site",
        36.4467,
        28.2258,
        "Old Town, Rhodes 851 00",
        "Medieval walled city and UNESCO World Heritage Site with cobbled lanes, the Street of the Knights "
        "and the Palace of the Grand Master.",
        "Always open",
        "Free",
        4.7,
        ["UNESCO World Heritage Site", "Street of the Knights", "Medieval walls"],
        ["Go early to avoid cruise crowds", "Wear comfortable shoes for the cobblestones"],
    ),
    _poi(
        "fallback-mandraki-harbor",
        "Mandraki Harbor",
        "attraction",
        36.4510,
        28.2262,
        "Mandraki, Rhodes 851 00",
        "Historic harbour said to be the site of the Colossus, with the deer statues and the medieval windmills.",
        "Always open",
        "Free",
        4.5,
        ["Deer statues", "Windmills", "Boat trips"],
        ["Best at sunset", "Day-trip boats to Symi leave from here"],
    ),
    _poi(
        "fallback-elli-beach",
        "Elli Beach",
        "beach",
        36.4556,
        28.2228,
        "Elli, Rhodes 851 00",
        "Organised town beach at the northern tip of Rhodes city with clear water and the Kallithea diving platform view.",
        "Always open",
        "Free (sunbeds extra)",
        4.4,
        ["Blue Flag water", "Diving platform", "Walking distance from town"],
        ["Arrive before 10am for sunbeds", "Windier afternoons"],
    ),
    _poi(
        "fallback-acropolis-of-rhodes",
        "Acropolis of Rhodes",
        "historical_site",
        36.4353,
        28.2084,
        "Monte Smith, Rhodes 851 00",
        "Hellenistic hilltop ruins on Monte Smith with the Temple of Apollo, the stadium and views over the sea.",
        "Always open",
        "Free",
        4.5,
        ["Temple of Apollo", "Ancient stadium", "Sunset views"],
        ["Little shade; bring water", "Sunset is the best time"],
    ),
    _poi(
        "fallback-lindos",
        "Lindos",
        "historical_site",
        36.0917,
        28.0856,
        "Lindos 851 07",
        "Whitewashed village below a clifftop acropolis, with St Paul's Bay and the main beach below.",
        "Acropolis 8:00-19:40",
        "Level 2",
        4.8,
        ["Acropolis of Lindos", "St Paul's Bay", "Captain's houses"],
        ["Visit the acropolis early", "Donkey rides are discouraged"],
    ),
]


def fallback_pois() -> List[Dict[str, Any]]:
    return copy.deepcopy(DEFAULT_FALLBACK_POIS)
