"""Tests for the workflow state helpers."""

import pytest

from newsletter_studio.models.state import (
    ErrorSeverity,
    ProcessingStage,
    add_error,
    create_initial_state,
    has_critical_errors,
)


@pytest.mark.asyncio
async def test_initial_state(newsletter, project):
    state = create_initial_state(newsletter, project, "gen-1", {"reconciler": None})

    assert set(state) == {
        "newsletter", "project", "context", "result", "outcome",
        "generation_metadata", "errors", "workflow_context",
    }
    assert state["generation_metadata"].generation_id == "gen-1"
    assert state["generation_metadata"].current_stage == ProcessingStage.CONTEXT
    assert state["errors"] == []


@pytest.mark.asyncio
async def test_only_critical_errors_stop_the_run(newsletter, project):
    state = create_initial_state(newsletter, project, "gen-1", {})

    add_error(state, ProcessingStage.CONTEXT, "slow spreadsheet")
    assert not has_critical_errors(state)

    add_error(state, ProcessingStage.DISPATCH, "no backend", ErrorSeverity.CRITICAL, "NO_BACKEND")
    assert has_critical_errors(state)
    assert str(state["errors"][-1]) == "[dispatch] no backend"
    assert state["errors"][-1].error_code == "NO_BACKEND"
