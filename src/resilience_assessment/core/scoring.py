"""Resilience assessment scoring engine.

Turns a session's stored Likert responses and the current scoring
configuration into a ScoringResult:

    responses -> area score (weighted, reverse-scored) -> area level + feedback
              -> sub-area scores -> sub-area levels -> conditional feedback
              -> unweighted overall score -> fixed overall level + band feedback

The engine is pure: it performs no I/O and never mutates configuration.
Results are recomputed on every read so feedback always reflects the latest
configured content.
"""

from collections.abc import Iterable, Mapping, Sequence

from resilience_assessment.core.entities import (
    AreaConfig,
    AreaScore,
    ContentType,
    Feedback,
    FeedbackContentItem,
    OverallFeedbackContent,
    QuestionConfig,
    ResponseValue,
    ScoreRange,
    ScoringConfig,
    ScoringResult,
    SubAreaConfig,
    SubAreaScore,
    UNKNOWN_LEVEL,
)
from resilience_assessment.core.feedback_rules import match_feedback_rule
from resilience_assessment.core.levels import (
    overall_level_for_score,
    resolve_level,
    resolve_range,
)
from resilience_assessment.observability import get_logger

logger = get_logger(__name__)


def score_responses(
    responses: Iterable[ResponseValue],
    questions: Mapping[str, QuestionConfig],
) -> float:
    """Compute a weighted 0-100 percentage score for a set of responses.

    Each answer is flipped on its scale when the question is reverse-scored
    (``scale_max + 1 - value``), then weighted. The score is the weighted sum
    divided by the weighted maximum possible sum.

    Args:
        responses: Answers to score.
        questions: Question configuration by id. Answers to questions not in
            this mapping are ignored.

    Returns:
        Unrounded score in 0.0-100.0; 0.0 when nothing could be scored.
    """
    weighted_total = 0.0
    weighted_max = 0.0

    for response in responses:
        question = questions.get(response.question_id)
        if question is None:
            continue

        scale_max = question.scale_max
        adjusted = response.value
        if question.is_reverse_scored:
            adjusted = scale_max + 1 - response.value

        weighted_total += adjusted * question.weight
        weighted_max += scale_max * question.weight

    if weighted_max == 0:
        return 0.0
    return weighted_total / weighted_max * 100


def group_by_area(
    responses: Iterable[ResponseValue],
    questions: Mapping[str, QuestionConfig],
) -> dict[str, list[ResponseValue]]:
    """Group responses by the area of their question, dropping unknown questions."""
    grouped: dict[str, list[ResponseValue]] = {}
    for response in responses:
        question = questions.get(response.question_id)
        if question is None:
            continue
        grouped.setdefault(question.area_id, []).append(response)
    return grouped


def group_by_sub_area(
    responses: Iterable[ResponseValue],
    questions: Mapping[str, QuestionConfig],
) -> dict[str, list[ResponseValue]]:
    """Group responses by sub-area; a response joins every sub-area of its question."""
    grouped: dict[str, list[ResponseValue]] = {}
    for response in responses:
        question = questions.get(response.question_id)
        if question is None:
            continue
        for sub_area_id in question.sub_area_ids:
            grouped.setdefault(sub_area_id, []).append(response)
    return grouped


def score_sub_areas(
    responses: Iterable[ResponseValue],
    questions: Mapping[str, QuestionConfig],
) -> dict[str, float]:
    """Score every sub-area that has at least one response.

    Sub-areas without responses are absent from the result rather than
    scored as 0.

    Args:
        responses: Answers to score.
        questions: Question configuration including sub-area memberships.

    Returns:
        Unrounded score per sub-area id.
    """
    return {
        sub_area_id: score_responses(bucket, questions)
        for sub_area_id, bucket in group_by_sub_area(responses, questions).items()
    }


def _feedback_from_items(items: Sequence[FeedbackContentItem]) -> Feedback:
    """Build a Feedback bundle taking the first block of each content type."""
    bodies: dict[str, str] = {}
    for item in sorted(items, key=lambda i: i.display_order):
        bodies.setdefault(item.content_type, item.body)
    return Feedback(
        summary=bodies.get(ContentType.SUMMARY.value, ""),
        strengths=bodies.get(ContentType.STRENGTHS.value, ""),
        growth_areas=bodies.get(ContentType.GROWTH_AREAS.value, ""),
        recommendations=bodies.get(ContentType.RECOMMENDATIONS.value, ""),
    )


def feedback_for_range(score_range: ScoreRange | None) -> Feedback:
    """Return the feedback bundle attached to a range; empty when there is none."""
    if score_range is None:
        return Feedback()
    return _feedback_from_items(score_range.feedback)


def overall_bands(content: Iterable[OverallFeedbackContent]) -> list[ScoreRange]:
    """Collapse overall feedback rows into one range per (min, max) band."""
    bands: dict[tuple[float, float], list[FeedbackContentItem]] = {}
    for row in content:
        key = (row.min_overall_score, row.max_overall_score)
        bands.setdefault(key, []).append(
            FeedbackContentItem(
                content_type=row.content_type,
                body=row.body,
                display_order=row.display_order,
            )
        )
    return [
        ScoreRange(
            id=f"overall:{low:g}-{high:g}",
            min_score=low,
            max_score=high,
            level_name="",
            level_code="",
            feedback=tuple(items),
        )
        for (low, high), items in sorted(bands.items())
    ]


def overall_feedback_for_score(
    score: float,
    content: Iterable[OverallFeedbackContent],
) -> Feedback:
    """Select overall feedback text for a score from the configurable bands.

    Bands are matched with the same half-open rule and top-band fallback as
    area levels. The overall level label is not derived from these bands;
    see levels.overall_level_for_score.
    """
    return feedback_for_range(resolve_range(score, overall_bands(content)))


def area_score_map(result: ScoringResult) -> dict[str, float]:
    """Build the compact score map persisted on a completed session.

    Keys are area slugs, plus ``"<area_slug>.<sub_area_slug>"`` for each
    scored sub-area.
    """
    scores: dict[str, float] = {}
    for area in result.area_scores:
        scores[area.slug] = area.score
        for sub_area in area.sub_area_scores:
            scores[f"{area.slug}.{sub_area.slug}"] = sub_area.score
    return scores


class ResilienceScorer:
    """Scores a session's responses against the scoring configuration.

    Area scores are weighted percentages of each area's answers. The overall
    score is the plain mean of area scores, so every scored area counts the
    same regardless of how many questions it has.
    """

    def score_area(
        self,
        area: AreaConfig,
        responses: Sequence[ResponseValue],
        questions: Mapping[str, QuestionConfig],
        sub_areas: Mapping[str, SubAreaConfig],
        config: ScoringConfig,
    ) -> AreaScore:
        """Score one area including its sub-areas and conditional feedback.

        Args:
            area: The area being scored.
            responses: Responses to questions of this area.
            questions: Question configuration by id.
            sub_areas: Sub-area configuration by id.
            config: Full configuration, for the area's feedback rules.

        Returns:
            The assembled AreaScore with scores rounded to 2 decimals.
        """
        raw_score = score_responses(responses, questions)
        area_range = resolve_range(raw_score, area.score_ranges)
        level = area_range.to_level() if area_range is not None else UNKNOWN_LEVEL

        sub_area_scores: list[SubAreaScore] = []
        sub_area_levels: dict[str, str] = {}
        for sub_area_id, sub_score in score_sub_areas(responses, questions).items():
            sub_area = sub_areas.get(sub_area_id)
            if sub_area is None or sub_area.area_id != area.id:
                continue
            sub_level = resolve_level(sub_score, sub_area.score_ranges)
            sub_area_levels[sub_area_id] = sub_level.code
            sub_area_scores.append(
                SubAreaScore(
                    sub_area_id=sub_area_id,
                    slug=sub_area.slug,
                    name=sub_area.name,
                    score=round(sub_score, 2),
                    level=sub_level,
                )
            )
        sub_area_scores.sort(key=lambda s: sub_areas[s.sub_area_id].display_order)

        conditional = match_feedback_rule(area.id, sub_area_levels, config.rules)

        return AreaScore(
            area_id=area.id,
            slug=area.slug,
            name=area.name,
            score=round(raw_score, 2),
            level=level,
            feedback=feedback_for_range(area_range),
            sub_area_scores=tuple(sub_area_scores),
            conditional_feedback=conditional,
        )

    def score_overall(self, area_scores: Sequence[AreaScore]) -> float:
        """Unweighted mean of area scores; 0.0 when no area was scored."""
        if not area_scores:
            return 0.0
        return sum(a.score for a in area_scores) / len(area_scores)

    def score_assessment(
        self,
        responses: Sequence[ResponseValue],
        config: ScoringConfig,
    ) -> ScoringResult:
        """Run the full scoring pipeline for one session.

        Args:
            responses: All stored responses of the session.
            config: Current scoring configuration.

        Returns:
            ScoringResult with areas in configured display order.
        """
        questions = {q.id: q for q in config.questions}
        areas = {a.id: a for a in config.areas}
        sub_areas = {s.id: s for s in config.sub_areas}

        area_scores: list[AreaScore] = []
        for area_id, area_responses in group_by_area(responses, questions).items():
            area = areas.get(area_id)
            if area is None:
                logger.warning(
                    "Responses skipped for unconfigured area",
                    area_id=area_id,
                    response_count=len(area_responses),
                )
                continue
            area_scores.append(
                self.score_area(area, area_responses, questions, sub_areas, config)
            )
        area_scores.sort(key=lambda a: areas[a.area_id].display_order)

        overall_score = self.score_overall(area_scores)

        result = ScoringResult(
            overall_score=round(overall_score, 2),
            overall_level=overall_level_for_score(overall_score),
            overall_feedback=overall_feedback_for_score(
                overall_score, config.overall_feedback
            ),
            area_scores=tuple(area_scores),
        )

        logger.info(
            "Assessment scoring complete",
            overall_score=result.overall_score,
            overall_level=result.overall_level.code,
            area_count=len(area_scores),
            response_count=len(responses),
        )
        return result
