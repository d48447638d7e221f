"""
Multi-category team search for ProviderMatch.

Finds a small set of providers whose combined skills cover the requested
categories while maximizing their aggregate score. The search is a
depth-first backtracking over the provider snapshot in its given order,
with branch state passed by value so that no branch observes another's
choices.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .scorer import rank_scored, score_provider
from .validation import provider_skills

logger = logging.getLogger(__name__)

DEFAULT_MAX_TEAM_SIZE = 3
DEFAULT_MAX_NODES = 100000


class _SearchState:
    """Per-invocation bookkeeping: best team so far and the branch budget."""

    def __init__(self, max_nodes: Optional[int]):
        self.max_nodes = max_nodes
        self.nodes = 0
        self.exhausted = False
        self.best_team: Optional[Tuple] = None
        self.best_aggregate: Optional[float] = None

    def take_node(self) -> bool:
        if self.max_nodes is not None and self.nodes >= self.max_nodes:
            self.exhausted = True
            return False
        self.nodes += 1
        return True


class CombinationSearch:
    """
    Backtracking search for the best provider team over several categories.

    A finished team replaces the best only when its aggregate score is
    strictly higher, so the first team found in snapshot order keeps ties.
    """

    def __init__(self, max_team_size: int = DEFAULT_MAX_TEAM_SIZE,
                 max_nodes: Optional[int] = DEFAULT_MAX_NODES,
                 reference_location: Optional[Dict] = None):
        """
        Initialize team search.

        Args:
            max_team_size: Largest team that may be returned
            max_nodes: Cap on explored branches (None for unbounded)
            reference_location: Service location for distance scoring (optional)
        """
        self.max_team_size = max_team_size
        self.max_nodes = max_nodes
        self.reference_location = reference_location

    def find(self, categories: Sequence[str], providers: Sequence[Dict]) -> List[Dict]:
        """
        Find the best team of providers for the requested categories.

        Providers are not filtered by verification status here; callers pass
        an already eligible snapshot.

        Args:
            categories: Requested categories
            providers: Provider snapshot

        Returns:
            Team entries, each a score result with "provider" and
            "covered_categories", in discovery order
        """
        categories = list(dict.fromkeys(categories))
        requested = set(categories)

        relevant = [
            provider for provider in providers
            if requested.intersection(provider_skills(provider))
        ]

        if not relevant or self.max_team_size < 1:
            logger.info(f"No relevant providers for {categories}")
            return []

        scores = [score_provider(provider, self.reference_location) for provider in relevant]

        if len(categories) == 1:
            return self._top_providers(relevant, scores, categories)

        state = _SearchState(self.max_nodes)
        self._backtrack(relevant, scores, frozenset(categories),
                        (), frozenset(), 0.0, state)

        if state.exhausted:
            logger.warning(f"Team search stopped after {state.nodes} branches "
                           f"(max_nodes={self.max_nodes}), returning best team found so far")

        if state.best_team is None:
            logger.warning(f"No covering team found for {categories}, "
                           f"falling back to top {self.max_team_size} providers")
            return self._top_providers(relevant, scores, categories)

        team = [
            {**scores[index], "provider": relevant[index], "covered_categories": list(covered)}
            for index, covered in state.best_team
        ]

        covered_count = sum(len(entry["covered_categories"]) for entry in team)
        logger.info(f"Best team for {categories}: {len(team)} providers covering "
                    f"{covered_count}/{len(categories)} categories, "
                    f"aggregate score {state.best_aggregate:.3f} ({state.nodes} branches explored)")
        return team

    def _backtrack(self, relevant: List[Dict], scores: List[Dict],
                   remaining: frozenset, team: Tuple, used: frozenset,
                   aggregate: float, state: _SearchState):
        """Explore every team that extends the current one."""
        if not remaining or len(team) >= self.max_team_size:
            self._record(team, aggregate, state)
            return

        for index, provider in enumerate(relevant):
            if index in used:
                continue

            covered = tuple(dict.fromkeys(
                skill for skill in provider_skills(provider) if skill in remaining
            ))
            if not covered:
                continue

            if not state.take_node():
                return

            self._backtrack(
                relevant, scores,
                remaining.difference(covered),
                team + ((index, covered),),
                used | {index},
                aggregate + scores[index]["score"],
                state
            )

    @staticmethod
    def _record(team: Tuple, aggregate: float, state: _SearchState):
        if state.best_aggregate is None or aggregate > state.best_aggregate:
            state.best_aggregate = aggregate
            state.best_team = team

    def _top_providers(self, relevant: List[Dict], scores: List[Dict],
                       categories: List[str]) -> List[Dict]:
        """Top providers by individual score, ignoring joint coverage."""
        entries = [
            {
                **result,
                "provider": provider,
                "covered_categories": [
                    category for category in categories
                    if category in provider_skills(provider)
                ]
            }
            for provider, result in zip(relevant, scores)
        ]
        return rank_scored(entries)[:self.max_team_size]


def find_best_combination(categories: Sequence[str],
                          providers: Sequence[Dict],
                          max_team_size: int = DEFAULT_MAX_TEAM_SIZE,
                          reference_location: Optional[Dict] = None,
                          max_nodes: Optional[int] = DEFAULT_MAX_NODES) -> List[Dict]:
    """
    Convenience function to search for the best provider team.

    Args:
        categories: Requested categories
        providers: Provider snapshot (pre-filtered to verified providers)
        max_team_size: Largest team that may be returned
        reference_location: Service location for distance scoring (optional)
        max_nodes: Cap on explored branches (None for unbounded)

    Returns:
        Team entries in discovery order
    """
    search = CombinationSearch(max_team_size, max_nodes, reference_location)
    return search.find(categories, providers)


def aggregate_score(team: Sequence[Dict]) -> float:
    """Sum of member scores."""
    return sum(entry["score"] for entry in team)
