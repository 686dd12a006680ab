"""
Tests for model-output cleanup and schema validation.
"""

from __future__ import annotations

import pytest

from planforge.ai.parsing import parse_as, parse_json_content, strip_code_fence
from planforge.ai.schemas import GeneratedPlan, GeneratedTask, TaskEnhancement
from planforge.lib.exceptions import AIErrorKind, AIServiceError


class TestStripCodeFence:
    @pytest.mark.parametrize(
        "raw",
        [
            '```json\n{"a": 1}\n```',
            '```\n{"a": 1}\n```',
            '```JSON {"a": 1}```',
            '  {"a": 1}  ',
        ],
    )
    def test_strips(self, raw: str) -> None:
        assert strip_code_fence(raw) == '{"a": 1}'

    def test_leaves_inner_backticks(self) -> None:
        assert strip_code_fence('["use `ls`"]') == '["use `ls`"]'


class TestParseJsonContent:
    def test_fenced_json(self) -> None:
        assert parse_json_content('```json\n["a", "b"]\n```') == ["a", "b"]

    def test_invalid_json_is_parse_error(self) -> None:
        with pytest.raises(AIServiceError) as exc_info:
            parse_json_content("Sure! Here is your plan: {")
        assert exc_info.value.kind is AIErrorKind.PARSE_ERROR
        assert str(exc_info.value) == "Failed to parse AI response as JSON"


class TestParseAs:
    """Shape validation after parsing."""

    def test_plan_requires_milestones_and_tasks(self) -> None:
        with pytest.raises(AIServiceError) as exc_info:
            parse_as('{"title": "No structure"}', GeneratedPlan)
        assert exc_info.value.kind is AIErrorKind.PARSE_ERROR

    def test_plan_camel_case_fields(self) -> None:
        plan = parse_as(
            '{"title": "T", "milestones": [{"title": "M", "estimatedDuration": "1 week"}],'
            ' "tasks": [{"title": "A", "estimatedHours": 3, "milestoneIndex": 0}],'
            ' "estimatedTimeframe": "1 month"}',
            GeneratedPlan,
        )
        assert plan.milestones[0].estimated_duration == "1 week"
        assert plan.tasks[0].estimated_hours == 3
        assert plan.tasks[0].milestone_index == 0
        assert plan.estimated_timeframe == "1 month"
        assert plan.tips == []

    def test_list_of_strings(self) -> None:
        assert parse_as('["Do X", "Do Y"]', list[str]) == ["Do X", "Do Y"]

    def test_list_of_strings_rejects_object(self) -> None:
        with pytest.raises(AIServiceError):
            parse_as('{"steps": ["Do X"]}', list[str])

    def test_enhancement(self) -> None:
        result = parse_as(
            '{"description": "Details", "estimatedHours": 5, "tips": ["Start early"]}',
            TaskEnhancement,
        )
        assert result.estimated_hours == 5
        assert result.tips == ["Start early"]


class TestGeneratedTaskPriority:
    @pytest.mark.parametrize(
        "raw,expected",
        [("HIGH", "HIGH"), ("low", "LOW"), (" Medium ", "MEDIUM"), ("urgent", "MEDIUM")],
    )
    def test_normalized(self, raw: str, expected: str) -> None:
        assert GeneratedTask(title="t", priority=raw).priority == expected

    def test_milestone_name_alias(self) -> None:
        task = GeneratedTask.model_validate({"title": "t", "milestoneName": "Launch"})
        assert task.milestone_name == "Launch"
