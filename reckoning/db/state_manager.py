"""State manager: every engine store on one SQLAlchemy session.

The table mixins hold the CRUD; the abstract store interfaces come last
in the bases so the mixins satisfy their abstract methods.
"""

from ..core.stores import (
    EventLog,
    NotificationStore,
    ProposalStore,
    RelationshipStore,
    SceneStore,
    TraitStore,
)
from ._core import CoreMixin
from ._events import EventMixin
from ._evolutions import EvolutionMixin
from ._relationships import RelationshipMixin


class StateManager(
    CoreMixin,
    EventMixin,
    RelationshipMixin,
    EvolutionMixin,
    EventLog,
    SceneStore,
    RelationshipStore,
    TraitStore,
    ProposalStore,
    NotificationStore,
):
    """Persistence for events, scenes, ledgers, proposals and notifications.

    Usage:
        state = StateManager()              # opens its own session
        state = StateManager(session=db)    # shares a caller's session

        with state.deferred_commit():
            ...                             # one atomic commit
    """
