"""Match slide text against a topic catalog.

Matching is lexical: a topic label, its unqualified form or a synonym found
as a contiguous run of stems in a slide scores 1.0; otherwise the score is
the share of the phrase's content stems present in the slide, with a fuzzy
fallback (rapidfuzz) so a misspelled stem still counts. A topic's confidence
is its best slide score, which keeps matching deterministic and means more
slides can only raise it.
"""
import re
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import lru_cache, partial

from rapidfuzz import fuzz, process

from pharm_study.knowledge import TopicCatalog, catalog_for, load_curriculum, normalize_text, strip_qualifier
from pharm_study.models import MatchResult, TopicSignal

DEFAULT_THRESHOLD = 0.75
FUZZY_TOKEN_CUTOFF = 90
FUZZY_MIN_LENGTH = 5
MIN_PEARL_LENGTH = 12

STOPWORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "by", "for", "from", "in", "is",
    "its", "of", "on", "or", "the", "to", "vs", "with",
})

PEARL_CUES = re.compile(
    r"\b(clinical pearls?|pearls?|key points?|remember|always|never|avoid\w*|"
    r"monitor\w*|contraindicat\w*|black box|caution|do not)\b",
    re.IGNORECASE,
)
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+|\n+|\s*[•▪●]\s*")


@lru_cache(maxsize=8192)
def stem(token: str) -> str:
    """Light suffix stripping: plurals, -ing and -ed."""
    if len(token) <= 3 or token.isdigit():
        return token
    if token.endswith("sses"):
        return token[:-2]
    if token.endswith("ies") and len(token) > 4:
        return token[:-3] + "y"
    if token.endswith(("ss", "us", "is")):
        return token
    if token.endswith("s"):
        return token[:-1]
    if token.endswith("ing") and len(token) > 5:
        return token[:-3]
    if token.endswith("ed") and len(token) > 4:
        return token[:-2]
    return token


@lru_cache(maxsize=None)
def phrase_stems(phrase: str) -> tuple:
    return tuple(stem(token) for token in normalize_text(phrase).split())


def find_clinical_pearls(text: str) -> list[str]:
    """Sentences of a slide that read like a clinical pearl."""
    pearls = []
    for sentence in _SENTENCE_BREAK.split(text):
        sentence = sentence.strip(" -*\t")
        if len(sentence) >= MIN_PEARL_LENGTH and PEARL_CUES.search(sentence):
            pearls.append(sentence)
    return pearls


@dataclass
class _SlideScan:
    confidences: dict = field(default_factory=dict)
    mentions: Counter = field(default_factory=Counter)
    drugs: Counter = field(default_factory=Counter)
    pearls: list = field(default_factory=list)


def _find_spans(stems: list, positions: dict, phrase: tuple) -> list:
    size = len(phrase)
    if not size:
        return []
    return [
        (start, start + size)
        for start in positions.get(phrase[0], ())
        if tuple(stems[start:start + size]) == phrase
    ]


def _overlap(phrase: tuple, slide_stems: set, vocabulary: list) -> float:
    content = [s for s in phrase if s not in STOPWORDS]
    if not content or not vocabulary:
        return 0.0
    hits = 0
    for s in content:
        if s in slide_stems:
            hits += 1
        elif len(s) >= FUZZY_MIN_LENGTH and process.extractOne(
            s, vocabulary, scorer=fuzz.ratio, score_cutoff=FUZZY_TOKEN_CUTOFF
        ) is not None:
            hits += 1
    return hits / len(content)


def claim_longest(spans) -> list:
    """Resolve overlapping (start, end, key) spans in favour of the longest.

    Ties go to the earlier span, then to the smaller key, so the result
    does not depend on the order spans were found in.
    """
    claimed = []
    taken = set()
    for start, end, key in sorted(spans, key=lambda span: (span[0] - span[1], span[0], span[2])):
        if taken.intersection(range(start, end)):
            continue
        taken.update(range(start, end))
        claimed.append((start, end, key))
    return claimed


def _scan_slide(text: str, topic_phrases: tuple, drug_phrases: tuple) -> _SlideScan:
    scan = _SlideScan(pearls=find_clinical_pearls(text))
    stems = [stem(token) for token in normalize_text(text).split()]
    if not stems:
        return scan
    positions = defaultdict(list)
    for index, s in enumerate(stems):
        positions[s].append(index)
    slide_stems = set(stems)
    vocabulary = sorted(slide_stems)

    topic_spans = []
    for topic_id, phrases in topic_phrases:
        best = 0.0
        for phrase in phrases:
            stemmed = phrase_stems(phrase)
            found = _find_spans(stems, positions, stemmed)
            if found:
                best = 1.0
                topic_spans.extend((start, end, topic_id) for start, end in found)
            elif best < 1.0:
                best = max(best, _overlap(stemmed, slide_stems, vocabulary))
        if best > 0:
            scan.confidences[topic_id] = best
    scan.mentions.update(key for _, _, key in claim_longest(topic_spans))

    drug_spans = []
    for name, stemmed in drug_phrases:
        drug_spans.extend((start, end, name) for start, end in _find_spans(stems, positions, stemmed))
    scan.drugs.update(key for _, _, key in claim_longest(drug_spans))
    return scan


def drug_vocabulary_for(template, catalog: TopicCatalog) -> list[str]:
    """Common drugs plus the pharmacokinetics/pharmacodynamics labels."""
    names = list(template.common_drugs)
    names.extend(
        strip_qualifier(topic.label)
        for topic in catalog.in_category("pharmacokinetics", "pharmacodynamics")
    )
    return names


def _drug_phrases(names) -> tuple:
    phrases = []
    seen = set()
    for name in names:
        stemmed = phrase_stems(name)
        if stemmed and stemmed not in seen:
            seen.add(stemmed)
            phrases.append((name, stemmed))
    return tuple(phrases)


def match_slides(
    slides,
    catalog: TopicCatalog,
    drug_vocabulary=(),
    threshold: float = DEFAULT_THRESHOLD,
    workers: int = 1,
) -> MatchResult:
    """Score every catalog topic against the slides.

    Args:
        slides: Ordered slide texts.
        catalog: Topic catalog of the module's organ system.
        drug_vocabulary: Drug names to count mentions of.
        threshold: Minimum confidence (0-1] for a topic to count as matched.
        workers: Slides are scanned in a thread pool when greater than 1.

    Returns:
        MatchResult with one signal per catalog topic.
    """
    if not 0 < threshold <= 1:
        raise ValueError(f"threshold must be in (0, 1], got {threshold}")
    slides = list(slides)
    scan = partial(
        _scan_slide,
        topic_phrases=tuple((topic.id, topic.phrases) for topic in catalog),
        drug_phrases=_drug_phrases(drug_vocabulary),
    )
    if workers > 1 and len(slides) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            scans = list(pool.map(scan, slides))
    else:
        scans = [scan(text) for text in slides]

    # Merge in slide order; max and sum make the result independent of
    # which worker finished first.
    confidence = {}
    evidence = defaultdict(list)
    mentions = Counter()
    drugs = Counter()
    pearls = []
    seen_pearls = set()
    for index, slide_scan in enumerate(scans):
        for topic_id, value in slide_scan.confidences.items():
            confidence[topic_id] = max(confidence.get(topic_id, 0.0), value)
            if value >= threshold:
                evidence[topic_id].append(index)
        mentions.update(slide_scan.mentions)
        drugs.update(slide_scan.drugs)
        for pearl in slide_scan.pearls:
            key = normalize_text(pearl)
            if key not in seen_pearls:
                seen_pearls.add(key)
                pearls.append(pearl)

    signals = {}
    for topic in catalog:
        value = confidence.get(topic.id, 0.0)
        signals[topic.id] = TopicSignal(
            topic_id=topic.id,
            confidence=round(value, 4),
            matched=value >= threshold,
            slides=tuple(evidence.get(topic.id, ())),
            mentions=mentions[topic.id],
        )
    return MatchResult(
        signals=signals,
        drug_mentions=dict(sorted(drugs.items())),
        clinical_pearls=pearls,
        total_slides=len(slides),
        threshold=threshold,
    )


def suggest_organ_system(slides, curriculum=None) -> str | None:
    """Guess the organ system whose catalog the slides cover best. Returns None if nothing matches."""
    templates = load_curriculum() if curriculum is None else curriculum
    scores = {}
    for organ_system, template in templates.items():
        result = match_slides(slides, catalog_for(template))
        scores[organ_system] = len(result.matched_ids)
    if not scores:
        return None
    best = max(scores, key=scores.get)
    return best if scores[best] > 0 else None
