from .mapper import (
    CombatantOverrides,
    character_data_from_combatant,
    combatant_from_character,
    overrides_from_dict,
)

__all__ = [
    "CombatantOverrides",
    "character_data_from_combatant",
    "combatant_from_character",
    "overrides_from_dict",
]
