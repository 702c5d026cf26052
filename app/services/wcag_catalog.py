"""
WCAG 2.1 success-criterion catalog.

Static reference data for the conformance report: every criterion id with
its conformance level, short title and principle. Test cases reference
criteria by id (``TestCase.wcag_criteria``); unknown ids are rejected at
write time by ``validate_criterion_ids``.
"""

from app.core.exceptions import ValidationError

LEVEL_ORDER = ("A", "AA", "AAA")

PRINCIPLE_ORDER = ("Perceivable", "Operable", "Understandable", "Robust")

# (id, level, title, principle)
_CRITERIA = (
    ("1.1.1", "A", "Non-text Content", "Perceivable"),
    ("1.2.1", "A", "Audio-only and Video-only", "Perceivable"),
    ("1.2.2", "A", "Captions (Prerecorded)", "Perceivable"),
    ("1.2.3", "A", "Audio Description or Media Alternative", "Perceivable"),
    ("1.2.4", "AA", "Captions (Live)", "Perceivable"),
    ("1.2.5", "AA", "Audio Description (Prerecorded)", "Perceivable"),
    ("1.2.6", "AAA", "Sign Language", "Perceivable"),
    ("1.2.7", "AAA", "Extended Audio Description", "Perceivable"),
    ("1.2.8", "AAA", "Media Alternative", "Perceivable"),
    ("1.2.9", "AAA", "Audio-only (Live)", "Perceivable"),
    ("1.3.1", "A", "Info and Relationships", "Perceivable"),
    ("1.3.2", "A", "Meaningful Sequence", "Perceivable"),
    ("1.3.3", "A", "Sensory Characteristics", "Perceivable"),
    ("1.3.4", "AA", "Orientation", "Perceivable"),
    ("1.3.5", "AA", "Identify Input Purpose", "Perceivable"),
    ("1.3.6", "AAA", "Identify Purpose", "Perceivable"),
    ("1.4.1", "A", "Use of Color", "Perceivable"),
    ("1.4.2", "A", "Audio Control", "Perceivable"),
    ("1.4.3", "AA", "Contrast (Minimum)", "Perceivable"),
    ("1.4.4", "AA", "Resize Text", "Perceivable"),
    ("1.4.5", "AA", "Images of Text", "Perceivable"),
    ("1.4.6", "AAA", "Contrast (Enhanced)", "Perceivable"),
    ("1.4.7", "AAA", "Low or No Background Audio", "Perceivable"),
    ("1.4.8", "AAA", "Visual Presentation", "Perceivable"),
    ("1.4.9", "AAA", "Images of Text (No Exception)", "Perceivable"),
    ("1.4.10", "AA", "Reflow", "Perceivable"),
    ("1.4.11", "AA", "Non-text Contrast", "Perceivable"),
    ("1.4.12", "AA", "Text Spacing", "Perceivable"),
    ("1.4.13", "AA", "Content on Hover or Focus", "Perceivable"),
    ("2.1.1", "A", "Keyboard", "Operable"),
    ("2.1.2", "A", "No Keyboard Trap", "Operable"),
    ("2.1.3", "AAA", "Keyboard (No Exception)", "Operable"),
    ("2.1.4", "A", "Character Key Shortcuts", "Operable"),
    ("2.2.1", "A", "Timing Adjustable", "Operable"),
    ("2.2.2", "A", "Pause, Stop, Hide", "Operable"),
    ("2.2.3", "AAA", "No Timing", "Operable"),
    ("2.2.4", "AAA", "Interruptions", "Operable"),
    ("2.2.5", "AAA", "Re-authenticating", "Operable"),
    ("2.2.6", "AAA", "Timeouts", "Operable"),
    ("2.3.1", "A", "Three Flashes or Below Threshold", "Operable"),
    ("2.3.2", "AAA", "Three Flashes", "Operable"),
    ("2.3.3", "AAA", "Animation from Interactions", "Operable"),
    ("2.4.1", "A", "Bypass Blocks", "Operable"),
    ("2.4.2", "A", "Page Titled", "Operable"),
    ("2.4.3", "A", "Focus Order", "Operable"),
    ("2.4.4", "A", "Link Purpose (In Context)", "Operable"),
    ("2.4.5", "AA", "Multiple Ways", "Operable"),
    ("2.4.6", "AA", "Headings and Labels", "Operable"),
    ("2.4.7", "AA", "Focus Visible", "Operable"),
    ("2.4.8", "AAA", "Location", "Operable"),
    ("2.4.9", "AAA", "Link Purpose (Link Only)", "Operable"),
    ("2.4.10", "AAA", "Section Headings", "Operable"),
    ("2.5.1", "A", "Pointer Gestures", "Operable"),
    ("2.5.2", "A", "Pointer Cancellation", "Operable"),
    ("2.5.3", "A", "Label in Name", "Operable"),
    ("2.5.4", "A", "Motion Actuation", "Operable"),
    ("2.5.5", "AAA", "Target Size", "Operable"),
    ("2.5.6", "AAA", "Concurrent Input Mechanisms", "Operable"),
    ("3.1.1", "A", "Language of Page", "Understandable"),
    ("3.1.2", "AA", "Language of Parts", "Understandable"),
    ("3.1.3", "AAA", "Unusual Words", "Understandable"),
    ("3.1.4", "AAA", "Abbreviations", "Understandable"),
    ("3.1.5", "AAA", "Reading Level", "Understandable"),
    ("3.1.6", "AAA", "Pronunciation", "Understandable"),
    ("3.2.1", "A", "On Focus", "Understandable"),
    ("3.2.2", "A", "On Input", "Understandable"),
    ("3.2.3", "AA", "Consistent Navigation", "Understandable"),
    ("3.2.4", "AA", "Consistent Identification", "Understandable"),
    ("3.2.5", "AAA", "Change on Request", "Understandable"),
    ("3.3.1", "A", "Error Identification", "Understandable"),
    ("3.3.2", "A", "Labels or Instructions", "Understandable"),
    ("3.3.3", "AA", "Error Suggestion", "Understandable"),
    ("3.3.4", "AA", "Error Prevention (Legal, Financial, Data)", "Understandable"),
    ("3.3.5", "AAA", "Help", "Understandable"),
    ("3.3.6", "AAA", "Error Prevention (All)", "Understandable"),
    ("4.1.1", "A", "Parsing", "Robust"),
    ("4.1.2", "A", "Name, Role, Value", "Robust"),
    ("4.1.3", "AA", "Status Messages", "Robust"),
)

WCAG_CRITERIA = [
    {"id": cid, "level": level, "title": title, "principle": principle}
    for cid, level, title, principle in _CRITERIA
]

WCAG_CRITERIA_MAP = {c["id"]: c for c in WCAG_CRITERIA}


def level_rank(level):
    """A → 0, AA → 1, AAA → 2."""
    return LEVEL_ORDER.index(level)


def criteria_up_to(level):
    """Catalog entries whose level is at or below ``level``, in catalog order."""
    limit = level_rank(level)
    return [c for c in WCAG_CRITERIA if level_rank(c["level"]) <= limit]


def criteria_at_level(level):
    return [c for c in WCAG_CRITERIA if c["level"] == level]


def validate_criterion_ids(ids):
    """Return ``ids`` as a de-duplicated list, raising on unknown criteria."""
    if ids is None:
        return []
    if not isinstance(ids, list):
        raise ValidationError(
            "wcag_criteria must be a list", details={"wcag_criteria": "must be a list"},
        )
    if not all(isinstance(i, str) for i in ids):
        raise ValidationError(
            "wcag_criteria must be a list of criterion ids",
            details={"wcag_criteria": "must be a list of strings"},
        )
    unknown = [i for i in ids if i not in WCAG_CRITERIA_MAP]
    if unknown:
        raise ValidationError(
            f"Unknown WCAG criteria: {', '.join(str(i) for i in unknown)}",
            details={"wcag_criteria": unknown},
        )
    seen = []
    for cid in ids:
        if cid not in seen:
            seen.append(cid)
    return seen
