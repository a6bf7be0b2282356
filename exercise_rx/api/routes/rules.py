"""
Rule Catalog API Routes

Endpoints for listing and retrieving prescription rules.
"""

from fastapi import APIRouter, HTTPException, status

from exercise_rx.api.models.responses import RuleDetailResponse, RuleInfo, RulesListResponse
from exercise_rx.rules import default_catalog

router = APIRouter()


@router.get("/rules", response_model=RulesListResponse)
async def list_rules() -> RulesListResponse:
    """
    List all rules in the packaged catalog, in declaration order.
    """
    catalog = default_catalog()
    rules = [
        RuleInfo(
            id=rule.id,
            name=rule.name,
            priority=rule.priority,
            evidence_source=rule.evidence_source,
            category=rule.category,
        )
        for rule in catalog
    ]
    return RulesListResponse(version=catalog.version, rules=rules, count=len(rules))


@router.get("/rules/{rule_id}", response_model=RuleDetailResponse)
async def get_rule(rule_id: str) -> RuleDetailResponse:
    """
    Get a single rule including its condition, action and tiers.

    Raises:
        HTTPException: If the rule id is unknown
    """
    catalog = default_catalog()
    rule = catalog.get(rule_id)
    if rule is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Rule '{rule_id}' not found",
        )
    return RuleDetailResponse(rule=rule)
