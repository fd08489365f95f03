"""Analysis runs: extraction, matching, gap analysis, progress and persistence."""
import logging
from dataclasses import replace

from pharm_study.errors import StudyCoreError
from pharm_study.extractor import extract_deck
from pharm_study.gaps import analyze_gaps
from pharm_study.knowledge import catalog_for, get_knowledge_base as knowledge_base_for, get_template
from pharm_study.matcher import drug_vocabulary_for, match_slides
from pharm_study.models import CREATED, READY, AnalysisOutcome, KnowledgeBase, SlideDeck, StudyModule
from pharm_study.progress import update_progress
from pharm_study.settings import load_analysis_settings
from pharm_study.store import begin_analysis, load_module, save_module, set_status

logger = logging.getLogger(__name__)


def get_knowledge_base(organ_system: str, curriculum=None) -> KnowledgeBase:
    """Curriculum scope of an organ system, for display."""
    return knowledge_base_for(organ_system, curriculum)


def _execute(db_path, module_id, read_decks, study_minutes, curriculum) -> AnalysisOutcome:
    # Reload after taking the processing flag so progress is merged into the
    # latest stored state, never into a caller's stale copy.
    module = load_module(db_path, module_id)
    settings = load_analysis_settings(db_path)
    decks = read_decks()

    template = get_template(module.organ_system, curriculum)
    catalog = catalog_for(template)
    slides = [text for deck in decks for text in deck.slides]
    match = match_slides(
        slides,
        catalog,
        drug_vocabulary=drug_vocabulary_for(template, catalog),
        threshold=settings.match_threshold,
        workers=settings.match_workers,
    )
    analysis = analyze_gaps(match, template, catalog, total_power_points=len(decks))
    progress = update_progress(
        module.study_progress,
        match.matched_ids,
        template.required_topics,
        elapsed_minutes=study_minutes,
        mastery_runs=settings.mastery_runs,
    )

    updated = replace(module, status=READY, content_stats=analysis.stats, study_progress=progress)
    save_module(db_path, updated, run={
        "source_refs": [deck.source for deck in decks],
        "gaps": analysis.gaps,
        "missing_drugs": analysis.missing_drugs,
        "recommendations": analysis.recommendations,
    })
    logger.info(
        "Analyzed module %s: %d slides, coverage %d%%, %d gaps",
        module_id, match.total_slides, analysis.stats.coverage_score, analysis.stats.knowledge_gaps,
    )
    return AnalysisOutcome(
        ok=True,
        module=updated,
        gaps=analysis.gaps,
        missing_drugs=analysis.missing_drugs,
        recommendations=analysis.recommendations,
    )


def _run(db_path, module_id, read_decks, study_minutes, curriculum) -> AnalysisOutcome:
    begin_analysis(db_path, module_id)
    logger.info("Analysis of module %s started", module_id)
    try:
        return _execute(db_path, module_id, read_decks, study_minutes, curriculum)
    except BaseException as exc:
        # Includes KeyboardInterrupt; a module left in 'processing' can never be analyzed again.
        logger.warning("Analysis of module %s failed: %r", module_id, exc)
        try:
            set_status(db_path, module_id, CREATED)
        except StudyCoreError:
            logger.exception("Could not revert module %s to %s", module_id, CREATED)
        raise


def run_analysis(
    db_path: str,
    module: StudyModule,
    slide_batches,
    study_minutes: int = 0,
    curriculum=None,
) -> AnalysisOutcome:
    """Analyze already-extracted slides for a module.

    Args:
        db_path: Store location.
        module: The module to analyze; only its id is used, state is reloaded.
        slide_batches: SlideDeck objects, or plain lists of slide texts (one per deck).
        study_minutes: Study time to add to the module's progress.
        curriculum: Templates by organ system; defaults to the packaged curriculum.

    Raises:
        TypeError: a batch is a single string instead of a list of slides.
        AnalysisInProgress: another run holds the module.
        StudyCoreError: any other failure; the module is back in 'created'.
    """
    slide_batches = list(slide_batches)
    for batch in slide_batches:
        if isinstance(batch, str):
            raise TypeError("slide_batches must hold lists of slide texts, not strings")
    decks = [
        batch if isinstance(batch, SlideDeck) else SlideDeck(source=f"batch-{i + 1}", slides=list(batch))
        for i, batch in enumerate(slide_batches)
    ]
    return _run(db_path, module.id, lambda: decks, study_minutes, curriculum)


def analyze_module(
    db_path: str,
    module_id: str,
    source_refs,
    study_minutes: int = 0,
    extractor=extract_deck,
    curriculum=None,
) -> AnalysisOutcome:
    """Extract and analyze source documents; the entry point for the UI layer.

    Core errors are returned as ``AnalysisOutcome(ok=False, error=...)``
    instead of raised. ``module`` on a failed outcome is the stored state
    after the failure, when it can be read.
    """
    refs = list(source_refs)
    try:
        return _run(db_path, module_id, lambda: [extractor(ref) for ref in refs], study_minutes, curriculum)
    except StudyCoreError as exc:
        try:
            module = load_module(db_path, module_id)
        except StudyCoreError:
            module = None
        return AnalysisOutcome(ok=False, module=module, error=exc)
