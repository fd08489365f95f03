"""Study progress accumulation across analysis runs."""
from datetime import date
from typing import Optional

from pharm_study.models import StudyProgress

MASTERY_RUNS = 2


def update_progress(
    previous: StudyProgress,
    matched,
    required_topics,
    elapsed_minutes: int = 0,
    mastery_runs: int = MASTERY_RUNS,
    today: Optional[date] = None,
) -> StudyProgress:
    """Fold one analysis run into the module's progress.

    Args:
        previous: Progress before this run (left unmodified).
        matched: Topic ids the matcher reported as covered this run.
        required_topics: The template's required topic ids.
        elapsed_minutes: Study time for the session, added to the total.
        mastery_runs: Consecutive matching runs needed for mastery.
        today: Date recorded as the last study date.

    Returns:
        A new StudyProgress.
    """
    if elapsed_minutes < 0:
        raise ValueError(f"elapsed_minutes cannot be negative, got {elapsed_minutes}")
    required = set(required_topics)
    covered = set(matched) & required

    completed = set(previous.completed_topics) | covered
    mastered = set(previous.mastered_concepts)
    needs_review = set(previous.needs_review)
    streaks = dict(previous.match_streaks)

    for topic_id in required:
        if topic_id in covered:
            streaks[topic_id] = streaks.get(topic_id, 0) + 1
            if streaks[topic_id] >= mastery_runs:
                mastered.add(topic_id)
                needs_review.discard(topic_id)
        else:
            streaks[topic_id] = 0
            # Regression: covered before, missing now
            if topic_id in previous.completed_topics:
                needs_review.add(topic_id)
                mastered.discard(topic_id)

    last_study_date = previous.last_study_date
    if elapsed_minutes > 0:
        last_study_date = (today or date.today()).isoformat()

    return StudyProgress(
        completed_topics=completed,
        total_topics=len(required),
        study_time_minutes=previous.study_time_minutes + elapsed_minutes,
        last_study_date=last_study_date,
        mastered_concepts=mastered,
        needs_review=needs_review,
        match_streaks={topic_id: count for topic_id, count in streaks.items() if count},
    )


def reset_progress(progress: StudyProgress) -> StudyProgress:
    """Clear topic state; accumulated study time and the last study date are kept."""
    return StudyProgress(
        total_topics=progress.total_topics,
        study_time_minutes=progress.study_time_minutes,
        last_study_date=progress.last_study_date,
    )
