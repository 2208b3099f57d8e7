from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Union

from .history_engine import HistoryIndexes, HistoryPoint, compute_history_indexes
from .journal_bonus import NO_BONUS, JournalBonus, apply_bonus, compute_journal_bonus
from .language_mapping import translate_value

SCORE_FIELDS = (
    "mood",
    "sleep",
    "stress_level",
    "academic_pressure",
    "social_support",
    "loneliness",
    "confidence",
    "journal_writing",
    "willingness_for_professional_support",
)

WEIGHTS: Mapping[str, float] = MappingProxyType({
    "mood": 0.18,
    "sleep": 0.14,
    "stress_level": 0.14,
    "academic_pressure": 0.09,
    "social_support": 0.09,
    "loneliness": 0.09,
    "confidence": 0.09,
    "journal_writing": 0.12,
    "willingness_for_professional_support": 0.06,
})

MOOD_SEVERITY = MappingProxyType({"happy": 0.0, "neutral": 0.25, "sad": 0.6, "anxious": 0.75, "depressed": 1.0})
LEVEL_SEVERITY = MappingProxyType({"low": 0.0, "medium": 0.5, "high": 1.0})
SUPPORT_SEVERITY = MappingProxyType({"weak": 1.0, "medium": 0.5, "strong": 0.0})
LONELINESS_SEVERITY = MappingProxyType({"hardly": 0.0, "sometimes": 0.5, "often": 1.0})
# Not journaling is a moderate penalty, not a maximal one.
YES_NO_SEVERITY = MappingProxyType({"yes": 0.0, "no": 0.5})

OPTIMAL_SLEEP_HOURS = 8
SLEEP_SATURATION_HOURS = 4
DEFAULT_SLEEP_HOURS = 7
MIN_SLEEP_HOURS = 1
MAX_SLEEP_HOURS = 10

# Raw answers arrive from the chat flow (camelCase) and from API clients (snake_case).
FIELD_ALIASES: Mapping[str, Sequence[str]] = MappingProxyType({
    "mood": ("mood",),
    "sleep_hours": ("sleep_hours", "sleepHours"),
    "stress_level": ("stress_level", "stressLevel"),
    "academic_pressure": ("academic_pressure", "academicPressure"),
    "social_support": ("social_support", "socialSupport"),
    "loneliness": ("loneliness",),
    "confidence": ("confidence", "confidenceLevel", "confidence_level"),
    "hobby": ("hobby", "hobbiesInterest", "hobbies_interest"),
    "journal_writing": ("journal_writing", "opennessToJournaling", "openness_to_journaling"),
    "willingness_for_professional_support": (
        "willingness_for_professional_support",
        "willingForProfessionalHelp",
        "willing_for_professional_help",
    ),
})

CATEGORY_SYNONYMS: Mapping[str, Mapping[str, str]] = MappingProxyType({
    "mood": MappingProxyType({
        "happy": "happy",
        "neutral": "neutral",
        "sad": "sad",
        "anxious": "anxious",
        "stressed": "anxious",
        "depressed": "depressed",
    }),
    "stress_level": MappingProxyType({"low": "low", "medium": "medium", "moderate": "medium", "high": "high"}),
    "academic_pressure": MappingProxyType({"low": "low", "medium": "medium", "moderate": "medium", "high": "high"}),
    "confidence": MappingProxyType({"low": "low", "medium": "medium", "moderate": "medium", "high": "high"}),
    "social_support": MappingProxyType({
        "weak": "weak",
        "average": "medium",
        "medium": "medium",
        "strong": "strong",
    }),
    "loneliness": MappingProxyType({
        "never": "hardly",
        "hardly": "hardly",
        "sometimes": "sometimes",
        "often": "often",
    }),
    "hobby": MappingProxyType({
        "sports": "sports",
        "art": "arts",
        "arts": "arts",
        "music": "music",
        "travel": "travelling",
        "travelling": "travelling",
        "traveling": "travelling",
        "reading": "reading",
        "none": "reading",
    }),
})

CATEGORY_DEFAULTS: Mapping[str, str] = MappingProxyType({
    "mood": "neutral",
    "stress_level": "medium",
    "academic_pressure": "medium",
    "confidence": "medium",
    "social_support": "medium",
    "loneliness": "sometimes",
    "hobby": "reading",
})

COUNTER_FIELDS = ("journal_entries_today", "journal_streak", "weekly_journal_count")

BAND_THRESHOLDS = (
    (24, "green"),
    (49, "yellow"),
    (74, "orange"),
)

RECOMMENDATION_PRIORITY = MappingProxyType({"A1": 1, "A3": 2, "A2": 3, "A5": 4, "A6": 5, "A4": 6})
MAX_RECOMMENDATIONS = 5

HOBBY_GROUPS = MappingProxyType({
    "music": "group jam or choir trial",
    "sports": "beginner sports circle",
    "arts": "art club meetup",
    "reading": "reading circle",
})

BAND_COPY = MappingProxyType({
    "red": (
        "High stress indicators—let’s combine support with small daily wins.",
        "Red band = prioritize support and structure now.",
    ),
    "orange": (
        "Risk is elevated; consistent routines can help this week.",
        "Orange band = elevated signals; add supportive routines.",
    ),
    "yellow": (
        "Moderate risk—small adjustments can improve your days.",
        "Yellow band = watchful mode; keep an eye on patterns.",
    ),
    "green": (
        "You’re in the green—keep nurturing your habits.",
        "Green band = stable; maintain helpful activities.",
    ),
})

TREND_THRESHOLD = 5.0
TREND_UP_NOTE = "Trending up."
TREND_DOWN_NOTE = "Trending down, let’s tighten routines."


@dataclass
class NormalizedInput:
    mood: str = "neutral"
    sleep_hours: int = DEFAULT_SLEEP_HOURS
    stress_level: str = "medium"
    academic_pressure: str = "medium"
    social_support: str = "medium"
    loneliness: str = "sometimes"
    confidence: str = "medium"
    hobby: str = "reading"
    journal_writing: str = "no"
    willingness_for_professional_support: str = "no"
    journal_entries_today: Optional[float] = None
    journal_streak: Optional[float] = None
    weekly_journal_count: Optional[float] = None
    last_journal_date: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {
            "mood": self.mood,
            "sleep_hours": self.sleep_hours,
            "stress_level": self.stress_level,
            "academic_pressure": self.academic_pressure,
            "social_support": self.social_support,
            "loneliness": self.loneliness,
            "confidence": self.confidence,
            "hobby": self.hobby,
            "journal_writing": self.journal_writing,
            "willingness_for_professional_support": self.willingness_for_professional_support,
        }
        for name in COUNTER_FIELDS + ("last_journal_date",):
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        return payload


@dataclass
class Flags:
    depressive_symptoms: str = "none"
    anxiety_symptoms: str = "none"
    burnout_academic_strain: bool = False
    social_isolation: bool = False
    help_readiness: bool = False

    def to_dict(self) -> dict:
        return {
            "depressive_symptoms": self.depressive_symptoms,
            "anxiety_symptoms": self.anxiety_symptoms,
            "burnout_academic_strain": self.burnout_academic_strain,
            "social_isolation": self.social_isolation,
            "help_readiness": self.help_readiness,
        }


@dataclass
class Recommendation:
    code: str
    title: str
    why: str
    personalization: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {"code": self.code, "title": self.title, "why": self.why}
        if self.personalization is not None:
            payload["personalization"] = self.personalization
        return payload


@dataclass
class CopyText:
    one_liner: str
    band_explainer: str
    trend_note: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {"one_liner": self.one_liner, "band_explainer": self.band_explainer}
        if self.trend_note is not None:
            payload["trend_note"] = self.trend_note
        return payload


@dataclass
class WriOutput:
    wri: float
    risk_band: str
    subscores: Dict[str, float]
    flags: Flags
    recommendations: List[Recommendation]
    copy: CopyText
    history_indexes: Optional[HistoryIndexes] = None
    base_wri: float = 0.0
    journal_bonus: JournalBonus = field(default=NO_BONUS)

    def to_dict(self) -> dict:
        return {
            "wri": self.wri,
            "risk_band": self.risk_band,
            "subscores": dict(self.subscores),
            "flags": self.flags.to_dict(),
            "recommendations": [item.to_dict() for item in self.recommendations],
            "copy": self.copy.to_dict(),
            "history_indexes": self.history_indexes.to_dict() if self.history_indexes else None,
            "base_wri": self.base_wri,
            "journal_bonus": self.journal_bonus.to_dict(),
        }


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _raw_value(raw: Mapping[str, object], name: str) -> object:
    for key in FIELD_ALIASES[name]:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _to_lower(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def normalize_category(name: str, value: object) -> str:
    return CATEGORY_SYNONYMS[name].get(_to_lower(value), CATEGORY_DEFAULTS[name])


def normalize_yes_no(value: object) -> str:
    if value is None:
        return "no"
    return "yes" if str(value).lower() == "yes" else "no"


def parse_number(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = re.search(r"(-?\d+(\.\d+)?)", str(value))
        if not match:
            return None
        number = float(match.group(1))
    if not math.isfinite(number):
        return None
    return number


def normalize_sleep_hours(value: object) -> int:
    hours = parse_number(value)
    if hours is None:
        hours = DEFAULT_SLEEP_HOURS
    return int(clamp(math.floor(hours + 0.5), MIN_SLEEP_HOURS, MAX_SLEEP_HOURS))


def _counter(value: object) -> Optional[float]:
    number = parse_number(value)
    if number is None:
        return None
    return int(number) if number.is_integer() else number


def normalize_inputs(raw: Optional[Mapping[str, object]], language: Optional[str] = "en") -> NormalizedInput:
    """Build a complete NormalizedInput from loosely typed survey answers.

    Never raises: unknown or missing answers fall back to the per-field
    default. With ``language="hi"`` Hindi answer words are translated first.
    """
    raw = raw or {}

    def answer(name: str) -> object:
        return translate_value(name, _raw_value(raw, name), language)

    last_date = raw.get("last_journal_date")
    if last_date is not None and hasattr(last_date, "isoformat"):
        last_date = last_date.isoformat()

    return NormalizedInput(
        mood=normalize_category("mood", answer("mood")),
        sleep_hours=normalize_sleep_hours(answer("sleep_hours")),
        stress_level=normalize_category("stress_level", answer("stress_level")),
        academic_pressure=normalize_category("academic_pressure", answer("academic_pressure")),
        social_support=normalize_category("social_support", answer("social_support")),
        loneliness=normalize_category("loneliness", answer("loneliness")),
        confidence=normalize_category("confidence", answer("confidence")),
        hobby=normalize_category("hobby", answer("hobby")),
        journal_writing=normalize_yes_no(answer("journal_writing")),
        willingness_for_professional_support=normalize_yes_no(answer("willingness_for_professional_support")),
        journal_entries_today=_counter(raw.get("journal_entries_today")),
        journal_streak=_counter(raw.get("journal_streak")),
        weekly_journal_count=_counter(raw.get("weekly_journal_count")),
        last_journal_date=str(last_date) if last_date is not None else None,
    )


def _severity(table: Mapping[str, float], value: str, fallback: str) -> float:
    return clamp(table.get(value, table[fallback]), 0.0, 1.0)


def sleep_subscore(sleep_hours: float) -> float:
    return clamp(abs(sleep_hours - OPTIMAL_SLEEP_HOURS) / SLEEP_SATURATION_HOURS, 0.0, 1.0)


def compute_subscores(inputs: NormalizedInput) -> Dict[str, float]:
    return {
        "mood": _severity(MOOD_SEVERITY, inputs.mood, "neutral"),
        "sleep": sleep_subscore(inputs.sleep_hours),
        "stress_level": _severity(LEVEL_SEVERITY, inputs.stress_level, "medium"),
        "academic_pressure": _severity(LEVEL_SEVERITY, inputs.academic_pressure, "medium"),
        "social_support": _severity(SUPPORT_SEVERITY, inputs.social_support, "medium"),
        "loneliness": _severity(LONELINESS_SEVERITY, inputs.loneliness, "sometimes"),
        "confidence": _severity(LEVEL_SEVERITY, inputs.confidence, "medium"),
        "journal_writing": _severity(YES_NO_SEVERITY, inputs.journal_writing, "no"),
        "willingness_for_professional_support": _severity(
            YES_NO_SEVERITY, inputs.willingness_for_professional_support, "no"
        ),
    }


def aggregate_wri(subscores: Mapping[str, float]) -> float:
    total = sum(subscores.get(name, 0.0) * weight for name, weight in WEIGHTS.items())
    return clamp(round(100 * total, 1), 0.0, 100.0)


def risk_band(wri: float) -> str:
    for upper, band in BAND_THRESHOLDS:
        if wri <= upper:
            return band
    return "red"


def derive_flags(inputs: NormalizedInput, subscores: Mapping[str, float], wri: float) -> Flags:
    low_resources = (
        subscores["loneliness"] >= 0.5
        or subscores["social_support"] >= 0.5
        or subscores["confidence"] >= 0.5
        or subscores["sleep"] >= 0.5
    )
    depressive_present = (inputs.mood in {"sad", "depressed"} or wri >= 50) and low_resources
    depressive_high = inputs.mood == "depressed" and wri >= 75

    anxiety_present = (
        inputs.mood == "anxious"
        or subscores["stress_level"] >= 0.5
        or subscores["academic_pressure"] >= 0.5
    ) and (subscores["sleep"] >= 0.5 or subscores["confidence"] >= 0.5)
    strained = inputs.stress_level == "high" and inputs.academic_pressure == "high"

    if depressive_high:
        depressive = "high_priority"
    elif depressive_present:
        depressive = "present"
    else:
        depressive = "none"

    if strained:
        anxiety = "high_priority"
    elif anxiety_present:
        anxiety = "present"
    else:
        anxiety = "none"

    return Flags(
        depressive_symptoms=depressive,
        anxiety_symptoms=anxiety,
        burnout_academic_strain=strained and subscores["sleep"] >= 0.5,
        social_isolation=inputs.social_support == "weak" or inputs.loneliness == "often",
        help_readiness=inputs.willingness_for_professional_support == "yes",
    )


def select_recommendations(inputs: NormalizedInput, flags: Flags, wri: float) -> List[Recommendation]:
    recommendations: List[Recommendation] = []

    def add(code: str, title: str, why: str, personalization: Optional[str] = None) -> None:
        if any(item.code == code for item in recommendations):
            return
        recommendations.append(Recommendation(code=code, title=title, why=why, personalization=personalization))

    if wri >= 75 or "high_priority" in {flags.depressive_symptoms, flags.anxiety_symptoms}:
        add("A1", "Professional help", "High risk indicators; a counselor can provide structured support and planning.")
    if inputs.stress_level == "high" or flags.anxiety_symptoms != "none":
        add(
            "A3",
            "Meditation & yoga",
            "Stress/anxiety signals present and sleep deviation; short daily practice can reduce arousal.",
        )
    if inputs.academic_pressure != "low" or inputs.confidence != "high":
        add(
            "A2",
            "Goal tracker (micro-goals)",
            "Academic pressure and/or reduced confidence benefit from small, time-boxed steps.",
        )
    if inputs.journal_writing == "no" and wri >= 25:
        add(
            "A4",
            "Journaling",
            "Risk is elevated and journaling is off; brief daily reflection can offload worry and track triggers.",
        )
    if flags.social_isolation:
        group = HOBBY_GROUPS.get(inputs.hobby, "beginner group")
        add(
            "A5",
            "Hobbies (group-based)",
            "Social isolation indicators; group-based hobby can rebuild support.",
            f"Match to hobby={inputs.hobby} → suggest {group}.",
        )
    if wri < 50:
        add("A6", "Wanderlust / light outings", "Lower risk band; light outings can stabilize routine and mood.")

    if len(recommendations) > MAX_RECOMMENDATIONS:
        recommendations.sort(key=lambda item: RECOMMENDATION_PRIORITY[item.code])
        del recommendations[MAX_RECOMMENDATIONS:]
    return recommendations


def trend_note(trend_delta: Optional[float]) -> Optional[str]:
    if trend_delta is None:
        return None
    if trend_delta >= TREND_THRESHOLD:
        return TREND_UP_NOTE
    if trend_delta <= -TREND_THRESHOLD:
        return TREND_DOWN_NOTE
    return None


def build_copy(band: str, history_indexes: Optional[HistoryIndexes] = None) -> CopyText:
    one_liner, band_explainer = BAND_COPY[band]
    delta = history_indexes.trend_delta if history_indexes else None
    return CopyText(one_liner=one_liner, band_explainer=band_explainer, trend_note=trend_note(delta))


def compute_wri(
    inputs: Union[NormalizedInput, Mapping[str, object]],
    history: Optional[Sequence[Union[HistoryPoint, dict]]] = None,
    apply_journal_bonus: bool = False,
) -> WriOutput:
    if not isinstance(inputs, NormalizedInput):
        inputs = normalize_inputs(inputs)

    subscores = compute_subscores(inputs)
    base_wri = aggregate_wri(subscores)

    bonus = NO_BONUS
    wri = base_wri
    if apply_journal_bonus:
        bonus = compute_journal_bonus(
            inputs.journal_entries_today,
            inputs.journal_streak,
            inputs.weekly_journal_count,
        )
        wri = apply_bonus(base_wri, bonus)

    band = risk_band(wri)
    flags = derive_flags(inputs, subscores, wri)
    history_indexes = compute_history_indexes(history) if history is not None else None

    return WriOutput(
        wri=wri,
        risk_band=band,
        subscores=subscores,
        flags=flags,
        recommendations=select_recommendations(inputs, flags, wri),
        copy=build_copy(band, history_indexes),
        history_indexes=history_indexes,
        base_wri=base_wri,
        journal_bonus=bonus,
    )
