from __future__ import annotations

import re
from typing import Iterable

from printflow.domain.models import Customer, Material
from printflow.domain.seed import SEED_CUSTOMERS, SEED_MATERIALS


# English names the draft parser tends to return for catalogue entries.
MATERIAL_SYNONYMS = {
    "vinyl": "vinilo",
    "banner": "tela",
    "fabric": "tela",
    "adhesive": "adhesivo",
    "fomex": "foam",
    "coroplast": "alveolar",
}


def _tokens(value: str) -> set[str]:
    words = {t.lower() for t in re.findall(r"[A-Za-z0-9áéíóúñÁÉÍÓÚÑ]+", value) if len(t) > 1}
    return {MATERIAL_SYNONYMS.get(w, w) for w in words}


class ReferenceRegistry:
    def __init__(self, materials: Iterable[Material] = SEED_MATERIALS, customers: Iterable[Customer] = SEED_CUSTOMERS):
        self._materials = {m.id: m for m in materials}
        self._customers = {c.id: c for c in customers}

    def materials(self) -> list[Material]:
        return list(self._materials.values())

    def customers(self) -> list[Customer]:
        return list(self._customers.values())

    def material(self, material_id: str) -> Material | None:
        return self._materials.get(material_id)

    def customer(self, customer_id: str) -> Customer | None:
        return self._customers.get(customer_id)

    def match_material(self, name: str) -> Material | None:
        """Best material for a free-text name such as ``"Foam"`` or ``"vinilo"``.

        Ties resolve to the first material in registry order.
        """
        wanted = _tokens(name)
        if not wanted:
            return None
        best: Material | None = None
        best_score = 0
        for material in self._materials.values():
            score = len(wanted & _tokens(material.name))
            if score > best_score:
                best, best_score = material, score
        return best
