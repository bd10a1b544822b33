"""
Abstract store interfaces consumed by the engine components.

The analytics and workflows never talk to a database directly; they
take one of these collaborators.  ``reckoning.db.StateManager``
implements all of them on SQLAlchemy, and the test suite ships small
in-memory versions.

Lookups that miss return ``None``.  Store I/O errors propagate to the
caller unchanged.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from ..enums import (
    ActionCategory,
    ActorType,
    EvolutionStatus,
    NotificationStatus,
    RelationshipDimension,
    TargetType,
    TraitStatus,
)
from .schemas import (
    CanonicalEvent,
    EmergenceNotification,
    EmergenceOpportunity,
    EntityRef,
    EntityTrait,
    PendingEvolution,
    Relationship,
    RelationshipDimensions,
    Scene,
)


class UnitOfWork:
    """Mixin for stores that can group several writes into one commit."""

    @contextmanager
    def deferred_commit(self) -> Iterator[None]:
        """Hold every write inside the block and commit once at the end.

        Stores without transactions treat this as a plain block.
        """
        yield


class EventLog(ABC):
    """Append-only, turn-ordered log of canonical events."""

    @abstractmethod
    def append_event(self, event: CanonicalEvent) -> CanonicalEvent:
        """Append an event.

        Raises:
            ValidationError: If the turn is lower than the latest turn
                already logged for the game.
        """

    @abstractmethod
    def get_event(self, event_id: str) -> CanonicalEvent | None:
        """Fetch one event by id."""

    @abstractmethod
    def find_by_actor(
        self,
        game_id: str,
        actor_type: ActorType | str,
        actor_id: str,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[CanonicalEvent]:
        """Events performed by an actor, ordered by turn then insertion."""

    @abstractmethod
    def find_by_target(
        self,
        game_id: str,
        target_type: TargetType | str,
        target_id: str,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[CanonicalEvent]:
        """Events aimed at a target, ordered by turn then insertion."""

    @abstractmethod
    def find_by_actions(
        self,
        game_id: str,
        actions: Sequence[str],
        limit: int = 1000,
        offset: int = 0,
    ) -> list[CanonicalEvent]:
        """Events whose action is one of ``actions``."""

    @abstractmethod
    def find_by_category(
        self,
        game_id: str,
        category: ActionCategory | str,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[CanonicalEvent]:
        """Events whose action belongs to ``category``."""

    @abstractmethod
    def find_by_tag(self, game_id: str, tag: str, limit: int = 1000) -> list[CanonicalEvent]:
        """Events carrying ``tag``."""

    @abstractmethod
    def get_recent_context(self, game_id: str, n: int) -> list[CanonicalEvent]:
        """The last ``n`` events of a game, oldest first."""

    @abstractmethod
    def count_events(self, game_id: str) -> int:
        """Total number of events logged for a game."""


class SceneStore(ABC):
    """Scene lookup and per-scene event counting."""

    @abstractmethod
    def create_scene(self, scene: Scene) -> Scene:
        """Persist a new scene.

        Raises:
            ConflictError: If the game already has an active scene and
                ``scene`` is active too.
        """

    @abstractmethod
    def get_scene(self, scene_id: str) -> Scene | None:
        """Fetch one scene by id."""

    @abstractmethod
    def find_active(self, game_id: str) -> Scene | None:
        """The game's active scene, if any."""

    @abstractmethod
    def complete_scene(self, scene_id: str, turn: int) -> Scene | None:
        """Mark a scene completed at ``turn``."""

    @abstractmethod
    def count_events_in_scene(self, scene_id: str) -> int:
        """Events logged between the scene's start and completion turns."""


class RelationshipStore(ABC):
    """Directional relationship rows keyed by (game, source, target)."""

    @abstractmethod
    def get_relationship(
        self, game_id: str, source: EntityRef, target: EntityRef
    ) -> Relationship | None:
        """The stored row for a pair, or None if never written."""

    @abstractmethod
    def upsert_relationship(
        self,
        game_id: str,
        source: EntityRef,
        target: EntityRef,
        dimensions: RelationshipDimensions,
        turn: int,
    ) -> Relationship:
        """Create or overwrite the row for a pair."""

    @abstractmethod
    def find_relationships_by_entity(
        self, game_id: str, entity: EntityRef
    ) -> list[Relationship]:
        """Every relationship where ``entity`` is either end."""

    @abstractmethod
    def find_relationships_by_threshold(
        self,
        game_id: str,
        dimension: RelationshipDimension | str,
        threshold: float,
        operator: str = ">=",
    ) -> list[Relationship]:
        """Relationships whose ``dimension`` compares to ``threshold``."""

    @abstractmethod
    def find_relationships_by_game(self, game_id: str) -> list[Relationship]:
        """Every relationship in a game."""

    @abstractmethod
    def delete_relationships_by_game(self, game_id: str) -> int:
        """Remove every relationship in a game, returning the count."""


class TraitStore(ABC):
    """Entity trait rows; removal is a status change, never a delete."""

    @abstractmethod
    def insert_trait(self, trait: EntityTrait) -> EntityTrait:
        """Insert a new trait row.

        Raises:
            ConflictError: If an active row already exists for the same
                (game, entity, trait).
        """

    @abstractmethod
    def set_active_trait_status(
        self, game_id: str, entity: EntityRef, trait: str, status: TraitStatus
    ) -> EntityTrait | None:
        """Move the active row for (entity, trait) to ``status``."""

    @abstractmethod
    def has_trait(self, game_id: str, entity: EntityRef, trait: str) -> bool:
        """True when an active row exists."""

    @abstractmethod
    def find_traits_by_entity(self, game_id: str, entity: EntityRef) -> list[EntityTrait]:
        """Active traits of an entity, oldest first."""

    @abstractmethod
    def find_traits_by_name(self, game_id: str, trait: str) -> list[EntityTrait]:
        """Active rows of one trait across entities."""

    @abstractmethod
    def get_trait_history(self, game_id: str, entity: EntityRef) -> list[EntityTrait]:
        """Every row for an entity regardless of status."""

    @abstractmethod
    def delete_traits_by_game(self, game_id: str) -> int:
        """Remove every trait row in a game, returning the count."""


class ProposalStore(UnitOfWork, ABC):
    """Pending evolution rows with an atomic resolution transition."""

    @abstractmethod
    def create_evolution(self, evolution: PendingEvolution) -> PendingEvolution:
        """Persist a new pending proposal."""

    @abstractmethod
    def get_evolution(self, evolution_id: str) -> PendingEvolution | None:
        """Fetch one proposal by id."""

    @abstractmethod
    def find_evolutions(
        self, game_id: str, status: EvolutionStatus | None = None
    ) -> list[PendingEvolution]:
        """Proposals for a game, oldest first, optionally by status."""

    @abstractmethod
    def find_evolutions_by_entity(
        self, game_id: str, entity: EntityRef
    ) -> list[PendingEvolution]:
        """Proposals concerning one entity, oldest first."""

    @abstractmethod
    def update_pending_evolution(
        self, evolution_id: str, fields: dict
    ) -> PendingEvolution | None:
        """Overwrite content fields only while the proposal is pending.

        Returns None when the id is unknown or no longer pending.
        """

    @abstractmethod
    def transition_evolution(
        self, evolution_id: str, status: EvolutionStatus, dm_notes: str | None = None
    ) -> PendingEvolution | None:
        """Atomically move a proposal out of pending.

        Only one caller can win for a given id: the write is conditional
        on the row still being pending.  Returns the updated proposal for
        the winner and None for everyone else (including unknown ids).
        """

    @abstractmethod
    def delete_evolutions_by_game(self, game_id: str) -> int:
        """Remove every proposal in a game, returning the count."""


class NotificationStore(UnitOfWork, ABC):
    """Emergence notifications with pending-uniqueness per (entity, type)."""

    @abstractmethod
    def create_notification(
        self, game_id: str, opportunity: EmergenceOpportunity
    ) -> EmergenceNotification | None:
        """Persist a pending notification.

        Returns None instead of inserting when a pending notification
        already exists for the same (game, entity id, emergence type).
        """

    @abstractmethod
    def exists_similar(self, game_id: str, entity_id: str, emergence_type: str) -> bool:
        """True when a matching notification is still pending."""

    @abstractmethod
    def get_notification(self, notification_id: str) -> EmergenceNotification | None:
        """Fetch one notification by id."""

    @abstractmethod
    def find_notifications(
        self,
        game_id: str,
        status: NotificationStatus | None = None,
        limit: int | None = None,
    ) -> list[EmergenceNotification]:
        """Notifications for a game, newest first."""

    @abstractmethod
    def transition_notification(
        self,
        notification_id: str,
        status: NotificationStatus,
        dm_notes: str | None = None,
    ) -> EmergenceNotification | None:
        """Atomically move a notification out of pending (winner only)."""

    @abstractmethod
    def delete_notifications_by_game(self, game_id: str) -> int:
        """Remove every notification in a game, returning the count."""
