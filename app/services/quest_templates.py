"""
Wayquest Backend - Quest Templates
Lore and flavor text used when quests are generated
"""

import random
from typing import Dict, List


class QuestTemplate:
    """Title/lore/reward triple for a generated mystery quest"""

    def __init__(self, id: str, title: str, lore_text: str, reward_id: str):
        self.id = id
        self.title = title
        self.lore_text = lore_text
        self.reward_id = reward_id


MYSTERY_TEMPLATES: List[QuestTemplate] = [
    QuestTemplate(
        "whispering-stone",
        "The Whispering Stone",
        "Passers-by swear a stone near here hums at dusk. Find it before the sound fades.",
        "echo_shard",
    ),
    QuestTemplate(
        "lost-courier",
        "The Lost Courier",
        "A courier's satchel was dropped somewhere on this street. Its seal is still unbroken.",
        "sealed_letter",
    ),
    QuestTemplate(
        "glimmer-in-the-grass",
        "Glimmer in the Grass",
        "Something small and bright caught the light here a moment ago.",
        "glass_charm",
    ),
    QuestTemplate(
        "cartographers-mark",
        "The Cartographer's Mark",
        "An old map marks this spot with a single inked circle and no explanation.",
        "map_fragment",
    ),
    QuestTemplate(
        "fading-footprints",
        "Fading Footprints",
        "A trail of footprints ends abruptly here, as if the walker simply vanished.",
        "worn_boot_buckle",
    ),
    QuestTemplate(
        "forgotten-cache",
        "The Forgotten Cache",
        "Someone hid supplies nearby and never returned for them.",
        "supply_crate",
    ),
    QuestTemplate(
        "restless-crow",
        "The Restless Crow",
        "A crow keeps circling this place, dropping shiny things. Go see what it guards.",
        "crow_feather",
    ),
    QuestTemplate(
        "street-musician",
        "The Street Musician's Coin",
        "A musician lost a lucky coin while packing up. It rolled somewhere close.",
        "lucky_coin",
    ),
]


WILDERNESS_TEMPLATES: List[Dict[str, str]] = [
    {
        "title": "Uncharted Clearing",
        "description": "Head out past the familiar streets and survey this spot.",
        "lore": "No landmark stands here, only the open sky and whatever you bring to it.",
    },
    {
        "title": "Wanderer's Waypoint",
        "description": "Reach this waypoint on the edge of the known map.",
        "lore": "Travellers leave a pebble here for luck. Nobody remembers who started it.",
    },
    {
        "title": "Quiet Outpost",
        "description": "Scout the outpost and report back.",
        "lore": "An unnamed corner of the neighbourhood, waiting for its first story.",
    },
    {
        "title": "Windswept Ridge",
        "description": "Climb to the marked point and take in the view.",
        "lore": "The wind carries rumours from across the city to this lonely place.",
    },
]


def landmark_flavor_templates(feature_type: str) -> List[str]:
    return [
        f"A significant {feature_type} that has stood the test of time.",
        f"Locals tell stories about this {feature_type}.",
        f"A perfect spot to reflect on history at this {feature_type}.",
        f"This {feature_type} is a key part of the city's heritage.",
    ]


def landmark_flavor_text(tags: Dict[str, str], rng: random.Random) -> str:
    """Lore for a landmark, preferring what the map data already says"""
    if tags.get("description"):
        return tags["description"]
    if tags.get("inscription"):
        return f'Inscribed: "{tags["inscription"]}"'
    if tags.get("memorial:text"):
        return f'Memorial: "{tags["memorial:text"]}"'
    if tags.get("wikipedia"):
        return f"A historic site documented in Wikipedia: {tags['wikipedia']}"

    feature_type = tags.get("historic") or tags.get("tourism") or tags.get("amenity") or "landmark"
    return rng.choice(landmark_flavor_templates(feature_type))
