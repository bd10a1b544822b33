"""
Pattern Observer.

Reads a player's classified actions from the event log and summarizes
their behavioral tendencies: opposing-pair ratios, how often they throw
the first punch, their social style, and a short list of dominant
traits.

Everything here is read-only.  Insufficient data never raises; ratios
fall back to 0 and the social approach to "minimal".
"""

import logging
from collections import Counter

from pydantic import BaseModel, Field

from ..enums import ActionCategory, ActorType, SocialApproach
from .actions import (
    DECEPTIVE_ACTIONS,
    HARMFUL_ACTIONS,
    HELPFUL_ACTIONS,
    HONEST_ACTIONS,
    get_action_category,
)
from .schemas import CanonicalEvent
from .stores import EventLog

logger = logging.getLogger(__name__)


class PatternObserverConfig(BaseModel):
    """Minimum-evidence thresholds for pattern analysis."""
    min_events_for_analysis: int = Field(default=5, ge=0)
    min_category_events_for_ratio: int = Field(default=3, ge=1)
    default_limit: int = Field(default=1000, ge=1)


class TurnRange(BaseModel):
    """Inclusive turn window."""
    start: int
    end: int

    def contains(self, turn: int) -> bool:
        return self.start <= turn <= self.end


class BehavioralRatios(BaseModel):
    """Each ratio is in [-1, 1]; positive leans toward the first term."""
    mercy_vs_violence: float = 0.0
    honesty_vs_deception: float = 0.0
    helpful_vs_harmful: float = 0.0


class ViolenceInitiation(BaseModel):
    initiates_violence: bool = False
    initiation_ratio: float = 0.0
    total_violence_events: int = 0
    attack_first_events: int = 0


class PlayerPatterns(BaseModel):
    """Behavioral summary for one player in one game."""
    player_id: str
    game_id: str
    total_events: int = 0
    category_counts: dict[ActionCategory, int] = Field(
        default_factory=lambda: {category: 0 for category in ActionCategory}
    )
    ratios: BehavioralRatios = Field(default_factory=BehavioralRatios)
    violence_initiation: ViolenceInitiation = Field(default_factory=ViolenceInitiation)
    social_approach: SocialApproach = SocialApproach.MINIMAL
    dominant_traits: list[str] = Field(default_factory=list)


# Social buckets, in tie-break order
SOCIAL_BUCKETS: tuple[tuple[SocialApproach, frozenset[str]], ...] = (
    (SocialApproach.HELPFUL, frozenset({"help"})),
    (SocialApproach.DIPLOMATIC, frozenset({"persuade", "befriend"})),
    (SocialApproach.MANIPULATIVE, frozenset({"bribe", "intimidate"})),
    (SocialApproach.HOSTILE, frozenset({"betray", "insult"})),
)

SOCIAL_DOMINANCE_SHARE = 0.4

SOCIAL_APPROACH_TRAITS = {
    SocialApproach.HELPFUL: "altruistic",
    SocialApproach.DIPLOMATIC: "charismatic",
    SocialApproach.MANIPULATIVE: "cunning",
    SocialApproach.HOSTILE: "antagonistic",
}


class PatternObserver:
    """Computes PlayerPatterns from an EventLog."""

    def __init__(self, event_log: EventLog, config: PatternObserverConfig | None = None):
        self.event_log = event_log
        self.config = config or PatternObserverConfig()

    # ==== Public API ====

    def get_player_patterns(
        self,
        game_id: str,
        player_id: str,
        turn_range: TurnRange | None = None,
        limit: int | None = None,
    ) -> PlayerPatterns:
        """Analyze a player's logged actions.

        Args:
            game_id: Game to read from.
            player_id: Actor id of the player.
            turn_range: Optional inclusive window to restrict analysis.
            limit: Maximum events to read (default from config).

        Returns:
            PlayerPatterns, with neutral values where evidence is thin.
        """
        events = self._player_events(game_id, player_id, turn_range, limit)
        category_counts = self._count_categories(events)
        action_counts = Counter(e.action for e in events if get_action_category(e.action))

        ratios = BehavioralRatios(
            mercy_vs_violence=self._ratio(
                category_counts[ActionCategory.MERCY],
                category_counts[ActionCategory.VIOLENCE],
            ),
            honesty_vs_deception=self._ratio(
                sum(action_counts[a] for a in HONEST_ACTIONS),
                sum(action_counts[a] for a in DECEPTIVE_ACTIONS),
            ),
            helpful_vs_harmful=self._ratio(
                sum(action_counts[a] for a in HELPFUL_ACTIONS),
                sum(action_counts[a] for a in HARMFUL_ACTIONS),
            ),
        )
        violence = self._violence_initiation(events)
        social = self._social_approach(events)

        patterns = PlayerPatterns(
            player_id=player_id,
            game_id=game_id,
            total_events=len(events),
            category_counts=category_counts,
            ratios=ratios,
            violence_initiation=violence,
            social_approach=social,
            dominant_traits=self._dominant_traits(ratios, violence, social, category_counts),
        )
        logger.debug(
            f"Patterns for {player_id} in {game_id}: {len(events)} events, "
            f"traits={patterns.dominant_traits}"
        )
        return patterns

    def calculate_ratio(
        self,
        game_id: str,
        player_id: str,
        category_a: ActionCategory | str,
        category_b: ActionCategory | str,
    ) -> float:
        """Ratio between any two categories; 0 when evidence is thin."""
        counts = self._count_categories(self._player_events(game_id, player_id))
        return self._ratio(counts[ActionCategory(category_a)], counts[ActionCategory(category_b)])

    def get_category_counts(
        self, game_id: str, player_id: str, turn_range: TurnRange | None = None
    ) -> dict[ActionCategory, int]:
        return self._count_categories(self._player_events(game_id, player_id, turn_range))

    # ==== Internals ====

    def _player_events(
        self,
        game_id: str,
        player_id: str,
        turn_range: TurnRange | None = None,
        limit: int | None = None,
    ) -> list[CanonicalEvent]:
        events = self.event_log.find_by_actor(
            game_id, ActorType.PLAYER, player_id, limit=limit or self.config.default_limit
        )
        if turn_range is not None:
            events = [e for e in events if turn_range.contains(e.turn)]
        return events

    @staticmethod
    def _count_categories(events: list[CanonicalEvent]) -> dict[ActionCategory, int]:
        counts = {category: 0 for category in ActionCategory}
        for event in events:
            category = get_action_category(event.action)
            if category is not None:
                counts[category] += 1
        return counts

    def _ratio(self, count_a: int, count_b: int) -> float:
        total = count_a + count_b
        if total < self.config.min_category_events_for_ratio:
            return 0.0
        return (count_a - count_b) / total

    def _violence_initiation(self, events: list[CanonicalEvent]) -> ViolenceInitiation:
        violent = [e for e in events if get_action_category(e.action) == ActionCategory.VIOLENCE]
        attack_first = sum(1 for e in violent if e.action == "attack_first")
        total = len(violent)
        ratio = attack_first / total if total else 0.0
        return ViolenceInitiation(
            initiates_violence=total >= self.config.min_category_events_for_ratio and ratio > 0.4,
            initiation_ratio=ratio,
            total_violence_events=total,
            attack_first_events=attack_first,
        )

    def _social_approach(self, events: list[CanonicalEvent]) -> SocialApproach:
        social = [e.action for e in events if get_action_category(e.action) == ActionCategory.SOCIAL]
        if len(social) < self.config.min_events_for_analysis:
            return SocialApproach.MINIMAL

        counts = Counter(social)
        scores = [
            (approach, sum(counts[a] for a in actions))
            for approach, actions in SOCIAL_BUCKETS
        ]
        # sorted() is stable, so equal scores keep bucket order
        ranked = sorted(scores, key=lambda item: item[1], reverse=True)
        total = len(social)
        top_share = ranked[0][1] / total
        runner_up_share = ranked[1][1] / total

        if top_share > SOCIAL_DOMINANCE_SHARE:
            return ranked[0][0]
        if top_share >= SOCIAL_DOMINANCE_SHARE and runner_up_share < SOCIAL_DOMINANCE_SHARE:
            return ranked[0][0]
        return SocialApproach.BALANCED

    @staticmethod
    def _dominant_traits(
        ratios: BehavioralRatios,
        violence: ViolenceInitiation,
        social: SocialApproach,
        category_counts: dict[ActionCategory, int],
    ) -> list[str]:
        traits: list[str] = []

        if ratios.mercy_vs_violence > 0.5:
            traits.append("merciful")
        elif ratios.mercy_vs_violence < -0.5:
            traits.append("ruthless")

        if violence.initiates_violence:
            traits.append("aggressive")
        elif violence.total_violence_events > 0 and violence.initiation_ratio < 0.2:
            traits.append("defensive")

        if ratios.honesty_vs_deception > 0.5:
            traits.append("honest")
        elif ratios.honesty_vs_deception < -0.5:
            traits.append("deceptive")

        if social in SOCIAL_APPROACH_TRAITS:
            traits.append(SOCIAL_APPROACH_TRAITS[social])

        classified = sum(category_counts.values())
        if classified > 0:
            if category_counts[ActionCategory.EXPLORATION] / classified > 0.3:
                traits.append("curious")
            if category_counts[ActionCategory.CHARACTER] / classified > 0.2:
                traits.append("contemplative")

        return traits
