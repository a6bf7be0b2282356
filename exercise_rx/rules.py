"""
Prescription rule catalog.

Rules are immutable records loaded from a JSON catalog: each pairs a condition
expression (see `exercise_rx.expressions`) with a FITT action, a priority and
its evidence source. Evaluation turns a profile and its measurements into a
flat facts mapping and collects every rule whose condition holds.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from exercise_rx.config import get_settings
from exercise_rx.exceptions import RuleCatalogError
from exercise_rx.expressions import ConditionExpression
from exercise_rx.schemas import Measurement, PartialFit, RuleOutput, UserProfile
from exercise_rx.vitals import has_central_obesity, latest_vitals

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "rule_catalog.json"

AGE_BAND_CATEGORY = "age_band"

# Facts a rule condition may reference (plus "has <tag>" on conditions)
FACT_NAMES = frozenset(
    {
        "age",
        "sex",
        "bmi",
        "waist_cm",
        "central_obesity",
        "systolic",
        "diastolic",
        "glucose",
        "glucose_fasting",
        "fasting_glucose",
        "random_glucose",
        "heart_rate",
    }
)


@lru_cache(maxsize=256)
def _compile(source: str) -> ConditionExpression:
    return ConditionExpression.parse(source, allowed_facts=FACT_NAMES)


def build_facts(profile: UserProfile, measurements: Iterable[Measurement]) -> Dict[str, Any]:
    """
    Flatten a profile and its latest measurements into rule facts.

    Malformed readings are treated as absent, so rules depending on them do
    not trigger.
    """
    vitals = latest_vitals(measurements, strict=False)
    fasting = vitals.glucose_fasting
    return {
        "conditions": frozenset(profile.conditions),
        "age": profile.age,
        "sex": profile.sex.value,
        "bmi": profile.bmi,
        "waist_cm": profile.waist_cm,
        "central_obesity": 1 if has_central_obesity(profile.sex.value, profile.waist_cm) else 0,
        "systolic": vitals.systolic,
        "diastolic": vitals.diastolic,
        "glucose": vitals.glucose,
        "glucose_fasting": 1 if fasting else 0,
        "fasting_glucose": vitals.glucose if fasting else None,
        "random_glucose": None if fasting else vitals.glucose,
        "heart_rate": vitals.heart_rate,
    }


class RuleTier(BaseModel):
    """A conditional refinement of a rule's base action."""

    model_config = ConfigDict(frozen=True)

    when: str = Field(..., description="Condition expression selecting this tier")
    fit: PartialFit = Field(..., description="Fields overriding the base action")

    @field_validator("when")
    @classmethod
    def validate_expression(cls, v: str) -> str:
        _compile(v)
        return v


class PrescriptionRule(BaseModel):
    """
    One evidence-tagged prescription rule.

    The first tier whose `when` holds overrides the base action field by field.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable rule identifier (e.g. 'HTN-001')")
    name: str = Field(..., description="Human-readable rule name")
    evidence_source: str = Field(..., description="Guideline the rule is drawn from")
    priority: int = Field(..., ge=1, le=10, description="Higher wins; 1-10")
    evidence_tags: List[str] = Field(default_factory=list)
    category: Optional[str] = Field(None, description="Grouping, e.g. 'age_band'")
    condition: str = Field(..., description="Trigger expression")
    action: PartialFit = Field(..., description="Base FITT output")
    tiers: List[RuleTier] = Field(default_factory=list)

    @field_validator("condition")
    @classmethod
    def validate_condition(cls, v: str) -> str:
        _compile(v)
        return v

    def matches(self, facts: Dict[str, Any]) -> bool:
        return _compile(self.condition).evaluate(facts)

    def resolve_fit(self, facts: Dict[str, Any]) -> PartialFit:
        """Base action with the first matching tier applied."""
        for tier in self.tiers:
            if _compile(tier.when).evaluate(facts):
                merged = {**self.action.model_dump(), **tier.fit.model_dump(exclude_none=True)}
                return PartialFit(**merged)
        return self.action


class RuleCatalog:
    """
    Ordered, immutable table of prescription rules.

    Declaration order breaks priority ties everywhere rules are sorted.
    """

    def __init__(self, rules: Iterable[PrescriptionRule], version: str = "unversioned"):
        self._rules = tuple(rules)
        self.version = version

        seen = set()
        for rule in self._rules:
            if rule.id in seen:
                raise RuleCatalogError(f"Duplicate rule id: {rule.id}")
            seen.add(rule.id)
        self._by_id = {rule.id: rule for rule in self._rules}

    @classmethod
    def from_file(cls, catalog_path: Path) -> "RuleCatalog":
        """
        Load a rule catalog from a JSON file.

        Raises:
            RuleCatalogError: If the file is missing or invalid
        """
        catalog_path = Path(catalog_path)
        if not catalog_path.exists():
            raise RuleCatalogError(f"Rule catalog not found: {catalog_path}")

        with open(catalog_path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise RuleCatalogError(f"Rule catalog is not valid JSON: {e}")

        try:
            rules = [PrescriptionRule(**item) for item in data.get("rules", [])]
        except (ValidationError, TypeError) as e:
            raise RuleCatalogError(f"Invalid rule catalog {catalog_path}: {e}")

        catalog = cls(rules, version=str(data.get("version", "unversioned")))
        logger.debug(f"Loaded {len(catalog)} rules from {catalog_path}")
        return catalog

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[PrescriptionRule]:
        return iter(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._by_id

    @property
    def rules(self) -> List[PrescriptionRule]:
        return list(self._rules)

    def get(self, rule_id: str) -> Optional[PrescriptionRule]:
        return self._by_id.get(rule_id)

    def _by_priority(self, rules: Iterable[PrescriptionRule]) -> List[PrescriptionRule]:
        # sorted() is stable, so equal priorities keep catalog order
        order = {rule.id: index for index, rule in enumerate(self._rules)}
        return sorted(rules, key=lambda r: (-r.priority, order.get(r.id, len(order))))

    def _matching(self, facts: Dict[str, Any]) -> List[PrescriptionRule]:
        matched = []
        for rule in self._rules:
            try:
                if rule.matches(facts):
                    matched.append(rule)
            except Exception:
                logger.exception(f"Rule {rule.id} failed to evaluate; treating as not triggered")
        return matched

    def applicable(
        self, profile: UserProfile, measurements: Iterable[Measurement]
    ) -> List[PrescriptionRule]:
        """Rules whose condition holds, by descending priority."""
        return self._by_priority(self._matching(build_facts(profile, measurements)))

    def evaluate(
        self,
        profile: UserProfile,
        measurements: Iterable[Measurement],
        confidence: Optional[Dict[str, float]] = None,
    ) -> List[RuleOutput]:
        """
        Evaluate every rule against a profile and its measurements.

        Args:
            profile: Normalized user profile
            measurements: Unordered measurement list
            confidence: Optional rule id -> confidence overrides (default 1.0)

        Returns:
            RuleOutputs for triggered rules, by descending priority
        """
        measurements = list(measurements or [])
        facts = build_facts(profile, measurements)
        confidence = confidence or {}

        outputs = []
        for rule in self._by_priority(self._matching(facts)):
            try:
                fit = rule.resolve_fit(facts)
            except Exception:
                logger.exception(f"Rule {rule.id} action failed; treating as not triggered")
                continue
            outputs.append(
                RuleOutput(
                    id=rule.id,
                    priority=rule.priority,
                    confidence=confidence.get(rule.id, 1.0),
                    fit=fit,
                )
            )

        logger.debug(f"Triggered rules: {[o.id for o in outputs]}")
        return outputs

    def age_band_rule(self, profile: UserProfile) -> Optional[PrescriptionRule]:
        """The age-band rule covering the profile's age, if the catalog has one."""
        facts = {"age": profile.age, "conditions": frozenset()}
        bands = [r for r in self._rules if r.category == AGE_BAND_CATEGORY]
        for rule in bands:
            if rule.matches(facts):
                return rule
        return bands[0] if bands else None

    def ensure_minimum_display_set(
        self,
        triggered_ids: Iterable[str],
        profile: UserProfile,
        measurements: Iterable[Measurement],
        n: int = 4,
    ) -> List[str]:
        """
        Build a fixed-size list of rule ids for display.

        Starts from the triggered ids, always adds the profile's age-band rule
        (display-only: it may not have triggered), then pads with other
        applicable rules and finally with any catalog rule. The result has
        exactly min(n, catalog size) unique ids, by descending priority.
        """
        chosen: List[str] = []
        for rule_id in triggered_ids:
            if rule_id in self._by_id and rule_id not in chosen:
                chosen.append(rule_id)

        age_rule = self.age_band_rule(profile)
        if age_rule is not None and age_rule.id not in chosen:
            chosen.append(age_rule.id)

        padding = self.applicable(profile, measurements) + self._by_priority(self._rules)
        for rule in padding:
            if len(chosen) >= n:
                break
            if rule.id not in chosen:
                chosen.append(rule.id)

        ranked = self._by_priority(self._by_id[rule_id] for rule_id in chosen)
        return [rule.id for rule in ranked[:n]]


@lru_cache
def default_catalog() -> RuleCatalog:
    """The configured (or packaged) rule catalog, loaded once."""
    path = get_settings().rule_catalog_path or DEFAULT_CATALOG_PATH
    return RuleCatalog.from_file(path)
