"""Statutory rule administration endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, status

from statutory_payroll.api.dependencies import Calculator, EditorId, EditorLabel, Store
from statutory_payroll.api.schemas import (
    DeductionBreakdownResponse,
    ErrorResponse,
    PreviewRequest,
    RevertRequest,
    RuleSetHistoryResponse,
    RuleSetResponse,
    RuleUpdateRequest,
)
from statutory_payroll.config import get_settings
from statutory_payroll.rules import parse_delta

router = APIRouter(prefix="/rules", tags=["statutory-rules"])


@router.get(
    "/current",
    response_model=RuleSetResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_current_rules(store: Store) -> RuleSetResponse:
    """Get the active rule set, creating the defaults on first use."""
    rule_set = await store.get_current()
    return RuleSetResponse.from_rule_set(rule_set)


@router.get("/history", response_model=RuleSetHistoryResponse)
async def get_rules_history(store: Store) -> RuleSetHistoryResponse:
    """List every rule set version, newest first."""
    history = await store.get_history()
    return RuleSetHistoryResponse(
        items=[RuleSetResponse.from_rule_set(rs) for rs in history],
        total=len(history),
    )


@router.get(
    "/versions/{version}",
    response_model=RuleSetResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_rules_version(
    store: Store,
    version: Annotated[int, Path(ge=1)],
) -> RuleSetResponse:
    """Get one historical rule set version."""
    rule_set = await store.get_version(version)
    return RuleSetResponse.from_rule_set(rule_set)


@router.put(
    "",
    response_model=RuleSetResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_rules(
    store: Store,
    editor_id: EditorId,
    editor_label: EditorLabel,
    payload: RuleUpdateRequest,
) -> RuleSetResponse:
    """Create a new rule set version from the current one plus changes."""
    rule_set = await store.update(
        editor_id,
        editor_label,
        payload.changes,
        expected_version=payload.expected_version,
    )
    return RuleSetResponse.from_rule_set(rule_set)


@router.post(
    "/revert",
    response_model=RuleSetResponse,
    status_code=status.HTTP_200_OK,
    responses={409: {"model": ErrorResponse}},
)
async def revert_rules(
    store: Store,
    editor_id: EditorId,
    editor_label: EditorLabel,
    payload: RevertRequest,
) -> RuleSetResponse:
    """Create a new rule set version carrying the documented defaults."""
    rule_set = await store.revert_to_defaults(
        editor_id,
        editor_label,
        expected_version=payload.expected_version,
    )
    return RuleSetResponse.from_rule_set(rule_set)


@router.post(
    "/preview",
    response_model=DeductionBreakdownResponse,
    responses={422: {"model": ErrorResponse}},
)
async def preview_deductions(
    store: Store,
    calculator: Calculator,
    payload: PreviewRequest,
) -> DeductionBreakdownResponse:
    """Preview deductions for a sample gross pay without saving anything.

    Draft changes are applied over the current rule set and validated. A
    draft is numbered as the version it would become if saved.
    """
    rule_set = await store.get_current()
    is_draft = payload.draft_changes is not None
    if is_draft:
        rule_set = rule_set.replace(
            version=rule_set.version + 1,
            is_active=False,
            **parse_delta(payload.draft_changes),
        )

    breakdown = calculator.preview(
        payload.gross_pay,
        rule_set,
        non_taxable_allowances=payload.non_taxable_allowances,
    )
    return DeductionBreakdownResponse.from_breakdown(
        breakdown, get_settings().currency, is_draft=is_draft
    )
