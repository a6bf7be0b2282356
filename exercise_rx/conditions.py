"""
Condition normalization.

Maps localized or free-text chronic-condition names to the canonical English
tag vocabulary used by every rule and by the safety gate. Matching runs in two
passes: an exact dictionary lookup, then ordered substring heuristics.
Unrecognized text is dropped rather than rejected, so a bad label can never
block prescription generation.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)


CANONICAL_TAGS: Set[str] = {
    "hypertension",
    "diabetes",
    "heart_disease",
    "coronary_heart_disease",
    "obesity",
    "hyperlipidemia",
    "fatty_liver",
    "arthritis",
    "heart_failure",
    "arrhythmia",
    "stroke",
    "osteoporosis",
    "knee_osteoarthritis",
    "low_back_pain",
    "angina",
}

# Exact localized names -> canonical tag
EXACT_NAMES: Dict[str, str] = {
    "高血压": "hypertension",
    "糖尿病": "diabetes",
    "心脏病": "heart_disease",
    "冠心病": "coronary_heart_disease",
    "缺血性心脏病": "coronary_heart_disease",
    "冠状动脉粥样硬化性心脏病": "coronary_heart_disease",
    "肥胖": "obesity",
    "高脂血症": "hyperlipidemia",
    "高血脂": "hyperlipidemia",
    "血脂异常": "hyperlipidemia",
    "脂肪肝": "fatty_liver",
    "骨关节炎": "arthritis",
    "关节炎": "arthritis",
    "心力衰竭": "heart_failure",
    "心律失常": "arrhythmia",
    "脑卒中": "stroke",
    "中风": "stroke",
    "卒中": "stroke",
    "骨质疏松": "osteoporosis",
    "膝骨关节炎": "knee_osteoarthritis",
    "膝关节骨关节炎": "knee_osteoarthritis",
    "腰痛": "low_back_pain",
    "下背痛": "low_back_pain",
    "心绞痛": "angina",
    "high blood pressure": "hypertension",
    "type 2 diabetes": "diabetes",
    "type 1 diabetes": "diabetes",
    "heart disease": "heart_disease",
    "coronary heart disease": "coronary_heart_disease",
    "coronary artery disease": "coronary_heart_disease",
    "knee osteoarthritis": "knee_osteoarthritis",
    "low back pain": "low_back_pain",
}

# Ordered (keywords, tag) heuristics; the first hit wins for a single label.
# More specific entries must precede the generic ones they overlap with
# (knee OA before arthritis, coronary before heart disease).
KEYWORD_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (("高血压", "hypertension", "high blood pressure"), "hypertension"),
    (("糖尿病", "diabetes", "diabetic"), "diabetes"),
    (
        (
            "冠心病",
            "缺血性心脏病",
            "冠状动脉",
            "coronary heart disease",
            "ischemic heart disease",
            "coronary artery disease",
        ),
        "coronary_heart_disease",
    ),
    (("心力衰竭", "心衰", "heart failure"), "heart_failure"),
    (("心律失常", "房颤", "arrhythmia", "atrial fibrillation"), "arrhythmia"),
    (("心绞痛", "angina"), "angina"),
    (("心脏病", "heart disease", "cardiac disease"), "heart_disease"),
    (("膝骨关节炎", "膝关节炎", "knee osteoarthritis", "knee oa"), "knee_osteoarthritis"),
    (("关节", "arthritis", "joint"), "arthritis"),
    (("卒中", "脑卒中", "中风", "stroke"), "stroke"),
    (("骨质疏松", "osteoporosis"), "osteoporosis"),
    (("腰痛", "下背痛", "low back pain", "lumbago"), "low_back_pain"),
    (("肥胖", "obesity", "obese"), "obesity"),
    (("脂肪肝", "fatty liver"), "fatty_liver"),
    (("高脂", "血脂异常", "hyperlipidemia", "dyslipidemia"), "hyperlipidemia"),
]

# Short abbreviations only match as whole tokens ("cad" must not match "decade")
ABBREVIATIONS: Dict[str, str] = {
    "cad": "coronary_heart_disease",
    "chd": "coronary_heart_disease",
    "ihd": "coronary_heart_disease",
    "htn": "hypertension",
    "t2dm": "diabetes",
    "chf": "heart_failure",
    "afib": "arrhythmia",
}

DISPLAY_LABELS: Dict[str, Dict[str, str]] = {
    "zh": {
        "hypertension": "高血压",
        "diabetes": "糖尿病",
        "heart_disease": "心脏病",
        "coronary_heart_disease": "冠心病",
        "obesity": "肥胖",
        "hyperlipidemia": "高脂血症",
        "fatty_liver": "脂肪肝",
        "arthritis": "关节炎",
        "heart_failure": "心力衰竭",
        "arrhythmia": "心律失常",
        "stroke": "卒中",
        "osteoporosis": "骨质疏松",
        "knee_osteoarthritis": "膝骨关节炎",
        "low_back_pain": "下背痛",
        "angina": "心绞痛",
    },
}


def _match_label(label: str) -> Optional[str]:
    """Resolve a single label to a canonical tag, or None."""
    if label in CANONICAL_TAGS:
        return label

    lowered = label.lower()
    if lowered in CANONICAL_TAGS:
        return lowered

    direct = EXACT_NAMES.get(label) or EXACT_NAMES.get(lowered)
    if direct:
        return direct

    for keywords, tag in KEYWORD_RULES:
        if any(keyword in lowered for keyword in keywords):
            return tag

    for token in lowered.replace(",", " ").replace("/", " ").split():
        if token in ABBREVIATIONS:
            return ABBREVIATIONS[token]

    return None


def normalize(raw_tags: Iterable[Optional[str]]) -> Set[str]:
    """
    Normalize a list of condition labels to canonical tags.

    Args:
        raw_tags: Localized names, free text or canonical tags

    Returns:
        Set of canonical tags. Unmatched labels are dropped.
    """
    tags: Set[str] = set()
    for raw in raw_tags or []:
        if raw is None:
            continue
        label = str(raw).strip()
        if not label:
            continue

        tag = _match_label(label)
        if tag is None:
            logger.debug(f"Dropping unrecognized condition label: {label!r}")
            continue
        tags.add(tag)
    return tags


def extract_from_text(history: Optional[str]) -> Set[str]:
    """
    Extract canonical tags from unstructured medical-history text.

    Unlike `normalize`, every matching keyword rule contributes a tag, since a
    history note usually mentions several conditions.
    """
    if not history or not isinstance(history, str):
        return set()

    lowered = history.lower()
    tags = {
        tag
        for keywords, tag in KEYWORD_RULES
        if any(keyword in lowered for keyword in keywords)
    }

    tokens = set(lowered.replace(",", " ").replace("/", " ").replace(";", " ").split())
    tags.update(tag for abbr, tag in ABBREVIATIONS.items() if abbr in tokens)
    return tags


def display_label(tag: str, locale: str = "zh") -> str:
    """Localized display label for a canonical tag (falls back to the tag)."""
    return DISPLAY_LABELS.get(locale, {}).get(tag, tag)
