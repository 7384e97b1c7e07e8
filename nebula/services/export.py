"""Plain-text result reports and CSV dumps for workspace analytics.

Reports group ideas by category name (alphabetical, case-insensitive) and list
uncategorized ideas last. Builders take already-computed scores so the same
numbers back the leaderboards and the downloads.
"""

from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from nebula.services.marketplace import MarketplaceScore
from nebula.services.pairwise import PairwiseStat
from nebula.services.stack_ranking import BordaScore

RULE_WIDTH = 80
UNCATEGORIZED_HEADING = "UNCATEGORIZED"
UNCATEGORIZED_LABEL = "Uncategorized"
UNKNOWN_PARTICIPANT = "Unknown"

PAIRWISE_TITLE = "Nebula Pairwise Voting Export"
RANKING_TITLE = "Nebula Stack Ranking Export (Borda Count)"
MARKETPLACE_TITLE = "Nebula Marketplace Allocation Export"

IDEAS_CSV_HEADER = ("Idea", "Category", "Participant", "Created At")
CATEGORIES_CSV_HEADER = ("Name", "Color", "Created At")


def _isoformat(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _group_by_category(
    scores: Iterable[Any], categories: Dict[str, Any]
) -> Tuple[List[Tuple[str, List[Any]]], List[Any]]:
    grouped: Dict[str, List[Any]] = {}
    uncategorized: List[Any] = []
    for score in scores:
        category = categories.get(score.note.category_id) if score.note.category_id else None
        if category is None:
            uncategorized.append(score)
        else:
            grouped.setdefault(category.name, []).append(score)
    ordered = sorted(grouped.items(), key=lambda item: item[0].casefold())
    return ordered, uncategorized


def _render_report(
    title: str,
    scores: Sequence[Any],
    categories: Dict[str, Any],
    describe: Callable[[Any], str],
    generated_at: Optional[datetime],
) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)
    lines = [
        title,
        f"Generated: {_isoformat(generated_at)}",
        f"Total Ideas: {len(scores)}",
        "",
        "=" * RULE_WIDTH,
        "",
    ]
    grouped, uncategorized = _group_by_category(scores, categories)

    for name, members in grouped:
        lines.extend([f"CATEGORY: {name}", "-" * RULE_WIDTH, ""])
        for index, score in enumerate(members, start=1):
            lines.append(f"{index}. {score.note.content}")
            lines.append(f"   {describe(score)}")
            lines.append(f"   AI Categorized: {'Yes' if score.note.is_ai_category else 'No'}")
            lines.append("")
        lines.append("")

    if uncategorized:
        lines.extend([UNCATEGORIZED_HEADING, "-" * RULE_WIDTH, ""])
        for index, score in enumerate(uncategorized, start=1):
            lines.append(f"{index}. {score.note.content}")
            lines.append(f"   {describe(score)}")
            lines.append("")

    return "\n".join(lines) + "\n"


def _index_categories(categories: Iterable[Any]) -> Dict[str, Any]:
    return {category.id: category for category in categories}


def pairwise_report(
    stats: Sequence[PairwiseStat],
    categories: Iterable[Any],
    generated_at: Optional[datetime] = None,
) -> str:
    """Win/loss report; each category lists its ideas by win rate, highest first."""
    ordered = sorted(stats, key=lambda stat: -stat.win_rate)
    return _render_report(
        PAIRWISE_TITLE,
        ordered,
        _index_categories(categories),
        lambda stat: (
            f"Wins: {stat.wins} | Losses: {stat.losses} | Win Rate: {stat.win_rate * 100:.1f}%"
        ),
        generated_at,
    )


def ranking_report(
    leaderboard: Sequence[BordaScore],
    categories: Iterable[Any],
    generated_at: Optional[datetime] = None,
) -> str:
    """Borda report in leaderboard order within each category."""
    return _render_report(
        RANKING_TITLE,
        leaderboard,
        _index_categories(categories),
        lambda score: (
            f"Borda Score: {score.total_score} | Average Rank: {score.average_rank:.2f}"
            f" | Participants: {score.participant_count}"
        ),
        generated_at,
    )


def marketplace_report(
    leaderboard: Sequence[MarketplaceScore],
    categories: Iterable[Any],
    generated_at: Optional[datetime] = None,
) -> str:
    return _render_report(
        MARKETPLACE_TITLE,
        leaderboard,
        _index_categories(categories),
        lambda score: (
            f"Total Coins: {score.total_coins} | Average Coins: {score.average_coins:.1f}"
            f" | Participants: {score.participant_count}"
        ),
        generated_at,
    )


def _write_csv(header: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def ideas_csv(notes: Iterable[Any], categories: Iterable[Any], participants: Iterable[Any]) -> str:
    """One quoted row per idea with its category and author names."""
    category_names = {category.id: category.name for category in categories}
    participant_names = {participant.id: participant.display_name for participant in participants}
    rows = (
        (
            note.content,
            category_names.get(note.category_id, UNCATEGORIZED_LABEL),
            participant_names.get(note.participant_id, UNKNOWN_PARTICIPANT),
            _isoformat(note.created_at),
        )
        for note in notes
    )
    return _write_csv(IDEAS_CSV_HEADER, rows)


def categories_csv(categories: Iterable[Any]) -> str:
    rows = (
        (category.name, category.color or "", _isoformat(category.created_at))
        for category in categories
    )
    return _write_csv(CATEGORIES_CSV_HEADER, rows)


def export_filename(kind: str, workspace_id: str, extension: str, now: Optional[datetime] = None) -> str:
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d_%H%M%S")
    return f"{kind}-{workspace_id}-{timestamp}.{extension}"
