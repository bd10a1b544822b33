"""
Action vocabulary for classified player behavior.

Every canonical event may carry one verb from this fixed list.  Verbs
roll up into six behavioral categories that PatternObserver and the
scene boundary heuristics count.
"""

from ..enums import ActionCategory

MERCY_ACTIONS = ("spare_enemy", "show_mercy", "forgive", "heal_enemy", "release_prisoner")
VIOLENCE_ACTIONS = ("kill", "execute", "attack_first", "threaten", "torture")
HONESTY_ACTIONS = (
    "tell_truth",
    "confess",
    "reveal_secret",
    "keep_promise",
    "lie",
    "deceive",
    "break_promise",
    "withhold_info",
)
SOCIAL_ACTIONS = ("help", "betray", "befriend", "insult", "intimidate", "persuade", "bribe")
EXPLORATION_ACTIONS = ("enter_location", "examine", "search", "steal", "unlock", "destroy")
CHARACTER_ACTIONS = ("level_up", "acquire_item", "use_ability", "rest", "pray", "meditate")

ACTIONS_BY_CATEGORY: dict[ActionCategory, tuple[str, ...]] = {
    ActionCategory.MERCY: MERCY_ACTIONS,
    ActionCategory.VIOLENCE: VIOLENCE_ACTIONS,
    ActionCategory.HONESTY: HONESTY_ACTIONS,
    ActionCategory.SOCIAL: SOCIAL_ACTIONS,
    ActionCategory.EXPLORATION: EXPLORATION_ACTIONS,
    ActionCategory.CHARACTER: CHARACTER_ACTIONS,
}

ACTION_TO_CATEGORY: dict[str, ActionCategory] = {
    action: category
    for category, actions in ACTIONS_BY_CATEGORY.items()
    for action in actions
}

ALL_ACTIONS: tuple[str, ...] = tuple(ACTION_TO_CATEGORY)

# Honesty is split into two opposing halves for ratio purposes
HONEST_ACTIONS = frozenset({"tell_truth", "confess", "reveal_secret", "keep_promise"})
DECEPTIVE_ACTIONS = frozenset({"lie", "deceive", "break_promise", "withhold_info"})

# Social verbs split the same way
HELPFUL_ACTIONS = frozenset({"help", "befriend", "persuade"})
HARMFUL_ACTIONS = frozenset({"betray", "insult", "intimidate", "bribe"})


def get_action_category(action: str | None) -> ActionCategory | None:
    """Category for a verb, or None for unknown/missing verbs."""
    if not action:
        return None
    return ACTION_TO_CATEGORY.get(action)


def is_action_in_category(action: str | None, category: ActionCategory | str) -> bool:
    return get_action_category(action) == category


def is_valid_action(value: object) -> bool:
    return isinstance(value, str) and value in ACTION_TO_CATEGORY


def is_valid_action_category(value: object) -> bool:
    return isinstance(value, str) and value in {c.value for c in ActionCategory}
