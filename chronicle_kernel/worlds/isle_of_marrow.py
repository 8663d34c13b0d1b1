"""
Authored demo worlds.

The Isle of Marrow is set in 1825 on an island grown over a leviathan
skeleton. The simple world is a two-location glade and inn used in tests.
"""

from datetime import datetime, timezone
from typing import Optional

from chronicle_kernel.models.graph import Position
from chronicle_kernel.models.record import (
    EconomyState,
    ItemRef,
    LocationRecord,
    MetaState,
    NpcRecord,
    PlayerState,
    SystemsState,
    Terrain,
    TideAccess,
    WorldRecord,
)
from chronicle_kernel.models.time import TideSystemState, TidePhase, TimeAnchor, TimeSystemState
from chronicle_kernel.models.weather import ClimateZone, WeatherSystemState
from chronicle_kernel.systems.time import format_iso
from chronicle_kernel.weather.metadata import ISLE_OF_MARROW_WEATHER_METADATA

PLAYER_ID = "player-1"
ISLE_OF_MARROW_STARTED_AT = "1825-05-14T14:00:00Z"


def _isle_locations():
    specs = [
        dict(
            id="the-landing",
            name="The Landing",
            description=(
                "A crescent of dark sand where the sea meets the southern curve of the ancient bones. "
                "Weathered docks extend from the shore, built atop what might be the creature's lower jaw. "
                "The skeleton arcs overhead to the north, massive ribs rising like cathedral vaults. "
                "Salt-crusted rope and driftwood mark where ships anchor."
            ),
            coords=Position(x=0, y=0, z=0),
            terrain=Terrain.BEACH,
            travel_speed_multiplier=1.2,
        ),
        dict(
            id="the-rib-market",
            name="The Rib Market",
            description=(
                "A natural marketplace built within the leviathan's ribcage, half-open to the sky. "
                "Merchants have strung tarps between the curved bones. Goods pile on stone tables: "
                "salt fish, coiled rope, tarnished silver and clay jars of Heartwater."
            ),
            items=[ItemRef(id="heartwater-jar", name="sealed jar of Heartwater")],
            coords=Position(x=0, y=1200, z=15),
            terrain=Terrain.PATH,
            travel_speed_multiplier=1.0,
        ),
        dict(
            id="the-drunken-vertebra",
            name="The Drunken Vertebra",
            description=(
                "A tilted timber tavern built into one of the spine's great vertebrae, its walls braced "
                "against ancient bone. Lanterns sway from hooks driven into cartilage turned to stone."
            ),
            coords=Position(x=-150, y=600, z=8),
            terrain=Terrain.INTERIOR,
            travel_speed_multiplier=0.9,
        ),
        dict(
            id="the-spine-ridge",
            name="The Spine Ridge",
            description=(
                "The highest point of the island, wind-scoured and pale. From here the whole crescent "
                "is visible. A broken mast lashed to the bone serves as a signal post."
            ),
            coords=Position(x=0, y=6000, z=120),
            terrain=Terrain.MOUNTAIN,
            travel_speed_multiplier=2.5,
        ),
        dict(
            id="the-heartspring",
            name="The Heartspring",
            description=(
                "A freshwater pool deep within the skeleton's interior, reached by descending through "
                "gaps between ribs. Some claim the pool beats faintly during storms."
            ),
            coords=Position(x=80, y=2500, z=-8),
            terrain=Terrain.CAVERN,
            travel_speed_multiplier=1.4,
        ),
        dict(
            id="the-maw",
            name="The Maw",
            description=(
                "The great southern opening where the leviathan's throat once was, a cove flanked by "
                "jawbones. At high tide seawater floods it. At low tide the water recedes to reveal "
                "dark sand and the entrance to the Lung Caves."
            ),
            coords=Position(x=0, y=-200, z=0),
            tide_access=TideAccess.LOW,
            terrain=Terrain.WATER,
            travel_speed_multiplier=3.0,
        ),
    ]
    return {
        spec["id"]: LocationRecord(weather_metadata=ISLE_OF_MARROW_WEATHER_METADATA[spec["id"]], **spec)
        for spec in specs
    }


def _isle_npcs():
    return {
        "mira-salt": NpcRecord(
            id="mira-salt", name="Mira Salt", role="Weather-watcher",
            location="the-spine-ridge", system_function="weather-watcher",
        ),
        "ledger-pike": NpcRecord(
            id="ledger-pike", name='Jon "Ledger" Pike', role="Quartermaster",
            location="the-rib-market", system_function="economy-tracker",
        ),
        "father-kel": NpcRecord(
            id="father-kel", name="Father Kel", role="Heretic Priest",
            location="the-heartspring", system_function="ritual-keeper",
        ),
        "aline-rua": NpcRecord(
            id="aline-rua", name="Aline Rua", role="Lost Captain's Heir",
            location="the-drunken-vertebra", system_function="rumor-source",
        ),
    }


def create_isle_of_marrow_world() -> WorldRecord:
    return WorldRecord(
        player=PlayerState(id=PLAYER_ID, pos=Position(x=0, y=0), location="the-landing"),
        locations=_isle_locations(),
        npcs=_isle_npcs(),
        systems=SystemsState(
            time=TimeSystemState(
                elapsed_minutes=0,
                start_hour=14,
                anchor=TimeAnchor(iso_date_time=ISLE_OF_MARROW_STARTED_AT),
            ),
            tide=TideSystemState(phase=TidePhase.HIGH, cycle_minutes=720),
            weather=WeatherSystemState(climate=ClimateZone.TEMPERATE, seed="isle-of-marrow"),
            economy=EconomyState(goods={
                "salt_fish": "abundant",
                "silver": "abundant",
                "heartwater": "scarce",
            }),
        ),
        ledger=[
            "Isle of Marrow initialized",
            "You arrive at the Landing, where dark sand meets ancient bone.",
            "The tide is high. The Maw is flooded and impassable.",
            "The market hums with quiet trade. Heartwater is scarce.",
        ],
        meta=MetaState(turn=0, seed="isle-of-marrow-1825", started_at=ISLE_OF_MARROW_STARTED_AT),
    )


def create_simple_world(started_at: Optional[str] = None) -> WorldRecord:
    """Two-location world. ``started_at`` defaults to today at 08:00 UTC."""
    if started_at is None:
        started_at = format_iso(
            datetime.now(timezone.utc).replace(hour=8, minute=0, second=0, microsecond=0)
        )
    return WorldRecord(
        player=PlayerState(id=PLAYER_ID, pos=Position(x=0, y=0), location="glade"),
        locations={
            "glade": LocationRecord(
                id="glade",
                name="Silent Glade",
                description=(
                    "A quiet clearing with soft moss and a faint, resin-scented breeze. "
                    "A narrow path leads toward a warm glow."
                ),
                coords=Position(x=0, y=0),
                terrain=Terrain.PATH,
                travel_speed_multiplier=1.0,
            ),
            "tavern": LocationRecord(
                id="tavern",
                name="Weary Dragon Inn",
                description=(
                    "A cozy inn alive with low chatter and lamplight. "
                    "The innkeeper polishes a mug behind the counter."
                ),
                items=[ItemRef(id="key", name="rusty key")],
                coords=Position(x=0, y=50),
                terrain=Terrain.INTERIOR,
                travel_speed_multiplier=0.9,
            ),
        },
        systems=SystemsState(
            time=TimeSystemState(
                elapsed_minutes=0,
                start_hour=8,
                anchor=TimeAnchor(iso_date_time=started_at),
            ),
            tide=TideSystemState(phase=TidePhase.LOW, cycle_minutes=720),
            weather=WeatherSystemState(climate=ClimateZone.TEMPERATE, seed="silent-glade"),
        ),
        ledger=["World initialized"],
        meta=MetaState(turn=0, started_at=started_at),
    )
