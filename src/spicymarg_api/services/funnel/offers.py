"""Staged in-venue offers and the visit each one records."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Offer(str, Enum):
    SPICY_MARGARITA = "spicy-margarita"
    ICEY_MARGARITA = "icey-margarita"
    FREE_COCKTAIL = "free-cocktail"

    @property
    def definition(self) -> "OfferDefinition":
        return _DEFINITIONS[self]

    @property
    def required_stage(self) -> int:
        return self.definition.required_stage

    @property
    def visit_number(self) -> int:
        return self.definition.visit_number

    @property
    def next_offer(self) -> "Offer | None":
        return self.definition.next_offer

    @classmethod
    def for_visit(cls, visit_number: int) -> "Offer":
        for offer, definition in _DEFINITIONS.items():
            if definition.visit_number == visit_number:
                return offer
        raise ValueError(f"No offer is bound to visit {visit_number}")


@dataclass(frozen=True, slots=True)
class OfferDefinition:
    required_stage: int
    visit_number: int
    title: str
    subtitle: str
    next_offer: Offer | None


_DEFINITIONS: dict[Offer, OfferDefinition] = {
    Offer.SPICY_MARGARITA: OfferDefinition(
        required_stage=1,
        visit_number=1,
        title="spicy. spicy. marg",
        subtitle="well arent you special.",
        next_offer=Offer.ICEY_MARGARITA,
    ),
    Offer.ICEY_MARGARITA: OfferDefinition(
        required_stage=2,
        visit_number=2,
        title="weve invented something new. an icey margarita!",
        subtitle="you have heard of a spicy one. this is an icey one.",
        next_offer=Offer.FREE_COCKTAIL,
    ),
    Offer.FREE_COCKTAIL: OfferDefinition(
        required_stage=3,
        visit_number=3,
        title="boom. free cocktail.",
        subtitle="have a house cocktail on us!",
        next_offer=None,
    ),
}

VISIT_NUMBERS = frozenset(definition.visit_number for definition in _DEFINITIONS.values())


__all__ = ["Offer", "OfferDefinition", "VISIT_NUMBERS"]
