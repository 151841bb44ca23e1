"""Template rendering for step text, option labels and log lines."""

from __future__ import annotations

import re
from typing import List, Mapping, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{\{([\w.]+)\}\}")

GENDER_FIELD = "gender"

_FORMS = {
    "male": ("he", "him", "his", "himself"),
    "female": ("she", "her", "her", "herself"),
    "neutral": ("they", "them", "their", "themself"),
}

# Any pronoun an author writes maps onto the same grammatical slot.
_SLOTS = {
    "he": 0, "she": 0, "they": 0,
    "him": 1, "her": 1, "them": 1,
    "his": 2, "hers": 2, "theirs": 2,
    "himself": 3, "herself": 3, "themself": 3,
}


def _build_pronoun_maps() -> dict:
    maps = {}
    for gender, forms in _FORMS.items():
        mapping = {}
        for key, slot in _SLOTS.items():
            mapping[key] = forms[slot]
            mapping[key.capitalize()] = forms[slot].capitalize()
        maps[gender] = mapping
    return maps


PRONOUN_MAPS = _build_pronoun_maps()


def derive_pronoun(name: str, variables: Mapping[str, str]) -> Optional[str]:
    """Resolve ``ns.him`` style names from the sibling ``ns.gender`` value."""
    namespace, dot, key = name.rpartition(".")
    if not dot:
        return None
    gender = variables.get(f"{namespace}.{GENDER_FIELD}")
    mapping = PRONOUN_MAPS.get(gender or "")
    if mapping is None:
        return None
    return mapping.get(key)


def render_text(template: Optional[str], variables: Mapping[str, str]) -> str:
    """Substitute ``{{name}}`` placeholders.

    A variable that is set and non-empty wins; otherwise a pronoun is derived
    when possible; anything else is left as written so authors can spot it.
    """
    if not template:
        return ""

    def _replace(match: "re.Match[str]") -> str:
        name = match.group(1)
        value = variables.get(name)
        if value:
            return value
        pronoun = derive_pronoun(name, variables)
        if pronoun:
            return pronoun
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def extract_variables(template: Optional[str]) -> List[str]:
    if not template:
        return []
    return PLACEHOLDER_PATTERN.findall(template)
