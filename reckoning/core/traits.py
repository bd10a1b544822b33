"""
Trait Ledger and the predefined trait catalog.

An entity holds at most one *active* row per trait.  Removing or fading
a trait changes the row's status and keeps it for history; adding the
trait again later creates a fresh active row.
"""

import logging

from ..enums import TraitCategory, TraitStatus
from ..errors import ConflictError, ValidationError
from .schemas import EntityRef, EntityTrait, TraitCatalogEntry
from .stores import TraitStore

logger = logging.getLogger(__name__)


def _entry(trait: str, category: TraitCategory, description: str, *opposites: str) -> TraitCatalogEntry:
    return TraitCatalogEntry(trait=trait, category=category, description=description, opposites=opposites)


TRAIT_CATALOG: tuple[TraitCatalogEntry, ...] = (
    # Moral
    _entry("honorable", TraitCategory.MORAL, "Keeps promises, fights fairly", "ruthless", "deceitful"),
    _entry("ruthless", TraitCategory.MORAL, "Will do anything to achieve goals", "honorable", "merciful"),
    _entry("merciful", TraitCategory.MORAL, "Shows compassion to enemies", "ruthless", "cruel"),
    _entry("pragmatic", TraitCategory.MORAL, "Prioritizes practical outcomes", "idealistic"),
    _entry("idealistic", TraitCategory.MORAL, "Holds to principles despite cost", "pragmatic", "corruptible"),
    _entry("corruptible", TraitCategory.MORAL, "Can be swayed from principles", "idealistic", "honorable"),
    # Emotional
    _entry("haunted", TraitCategory.EMOTIONAL, "Troubled by past events", "serene"),
    _entry("hopeful", TraitCategory.EMOTIONAL, "Believes in positive outcomes", "bitter", "cynical"),
    _entry("bitter", TraitCategory.EMOTIONAL, "Resentful of past wrongs", "hopeful", "serene"),
    _entry("serene", TraitCategory.EMOTIONAL, "At peace despite circumstances", "volatile", "haunted"),
    _entry("volatile", TraitCategory.EMOTIONAL, "Prone to sudden emotional shifts", "serene", "guarded"),
    _entry("guarded", TraitCategory.EMOTIONAL, "Keeps emotions hidden", "volatile"),
    # Capability
    _entry("battle-hardened", TraitCategory.CAPABILITY, "Experienced in combat", "naive"),
    _entry("scholarly", TraitCategory.CAPABILITY, "Well-read and knowledgeable"),
    _entry("street-wise", TraitCategory.CAPABILITY, "Knows how to survive", "naive"),
    _entry("naive", TraitCategory.CAPABILITY, "Inexperienced with the world", "street-wise", "battle-hardened"),
    _entry("cunning", TraitCategory.CAPABILITY, "Clever and strategic"),
    _entry("broken", TraitCategory.CAPABILITY, "Damaged by experiences"),
    # Reputation
    _entry("feared", TraitCategory.REPUTATION, "Others are afraid", "beloved"),
    _entry("beloved", TraitCategory.REPUTATION, "Others feel affection", "feared", "notorious"),
    _entry("notorious", TraitCategory.REPUTATION, "Known for bad deeds", "beloved", "mysterious"),
    _entry("mysterious", TraitCategory.REPUTATION, "Little is known about them", "notorious", "legendary"),
    _entry("disgraced", TraitCategory.REPUTATION, "Fallen from honor", "legendary"),
    _entry("legendary", TraitCategory.REPUTATION, "Known for great deeds", "disgraced", "mysterious"),
)

_CATALOG_BY_TRAIT = {entry.trait: entry for entry in TRAIT_CATALOG}


def get_catalog_entry(trait: str) -> TraitCatalogEntry | None:
    return _CATALOG_BY_TRAIT.get(trait)


class TraitLedger:
    """Adds, removes and queries entity traits through a TraitStore."""

    def __init__(self, store: TraitStore):
        self._store = store

    # ==== Mutations ====

    def add_trait(
        self,
        game_id: str,
        entity: EntityRef,
        trait: str,
        turn: int,
        source_event_id: str | None = None,
    ) -> EntityTrait:
        """Give an entity a trait.

        Raises:
            ConflictError: The entity already has this trait active.
            ValidationError: Empty trait name.
        """
        trait = (trait or "").strip()
        if not trait:
            raise ValidationError("Trait name must not be empty")
        if self._store.has_trait(game_id, entity, trait):
            raise ConflictError(f"{entity} already has active trait '{trait}'")

        row = self._store.insert_trait(
            EntityTrait(
                game_id=game_id,
                entity=entity,
                trait=trait,
                acquired_turn=turn,
                source_event_id=source_event_id,
            )
        )
        logger.info(f"Trait added: {entity} is now '{trait}' (turn {turn})")
        return row

    def remove_trait(self, game_id: str, entity: EntityRef, trait: str) -> EntityTrait | None:
        """Soft-remove the active row; None if the trait isn't active."""
        row = self._store.set_active_trait_status(game_id, entity, trait, TraitStatus.REMOVED)
        if row is None:
            logger.warning(f"Trait remove skipped: {entity} has no active '{trait}'")
        else:
            logger.info(f"Trait removed: {entity} is no longer '{trait}'")
        return row

    def fade_trait(self, game_id: str, entity: EntityRef, trait: str) -> EntityTrait | None:
        """Mark the active row faded; None if the trait isn't active."""
        return self._store.set_active_trait_status(game_id, entity, trait, TraitStatus.FADED)

    # ==== Queries ====

    def has_trait(self, game_id: str, entity: EntityRef, trait: str) -> bool:
        return self._store.has_trait(game_id, entity, trait)

    def find_by_entity(self, game_id: str, entity: EntityRef) -> list[EntityTrait]:
        return self._store.find_traits_by_entity(game_id, entity)

    def get_trait_names(self, game_id: str, entity: EntityRef) -> list[str]:
        return [row.trait for row in self.find_by_entity(game_id, entity)]

    def find_by_trait(self, game_id: str, trait: str) -> list[EntityTrait]:
        return self._store.find_traits_by_name(game_id, trait)

    def get_history(self, game_id: str, entity: EntityRef) -> list[EntityTrait]:
        return self._store.get_trait_history(game_id, entity)

    def delete_by_game(self, game_id: str) -> int:
        return self._store.delete_traits_by_game(game_id)

    # ==== Catalog ====

    @staticmethod
    def get_catalog() -> list[TraitCatalogEntry]:
        return list(TRAIT_CATALOG)

    @staticmethod
    def get_catalog_by_category(category: TraitCategory | str) -> list[TraitCatalogEntry]:
        return [entry for entry in TRAIT_CATALOG if entry.category == category]

    @staticmethod
    def get_opposites(trait: str) -> tuple[str, ...]:
        entry = get_catalog_entry(trait)
        return entry.opposites if entry else ()
