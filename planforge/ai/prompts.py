"""
Prompt templates for plan generation.

Each builder returns ``(system_message, user_message)``. All prompts ask
for JSON only; the reply is parsed by planforge.ai.parsing.
"""

from __future__ import annotations

from collections.abc import Sequence

PLAN_SYSTEM_PROMPT = (
    "You are an expert project manager and goal-setting coach. "
    "Always respond with valid JSON only, no additional text or explanations."
)
ENHANCE_SYSTEM_PROMPT = "You are a helpful assistant. Respond with valid JSON only."
NEXT_STEPS_SYSTEM_PROMPT = "You are a helpful project advisor. Respond with a JSON array only."
TASKS_SYSTEM_PROMPT = "You are an expert project manager. Respond with valid JSON only."

_PLAN_FORMAT = """{
  "title": "Concise, actionable plan title (max 60 characters)",
  "description": "What this plan accomplishes (2-3 sentences)",
  "milestones": [
    {
      "title": "Milestone title",
      "description": "What this milestone achieves",
      "order": 1,
      "estimatedDuration": "e.g. 2 weeks"
    }
  ],
  "tasks": [
    {
      "title": "Specific, actionable task title",
      "description": "What needs to be done",
      "priority": "HIGH|MEDIUM|LOW",
      "estimatedHours": 8,
      "milestoneIndex": 0,
      "order": 1,
      "prerequisites": ["Titles of tasks that must be done first"]
    }
  ],
  "estimatedTimeframe": "Overall estimated timeframe",
  "tips": ["Practical advice for success"]
}"""

_PLAN_GUIDELINES = """Guidelines:
- Create 3-5 milestones that build on each other
- Generate 8-15 specific, actionable tasks
- Assign every task to a milestone with milestoneIndex (0-based)
- Use realistic time estimates
- List prerequisites only by exact titles of other tasks in this plan
- Keep the plan specific, measurable, achievable, relevant and time-bound"""

_ENHANCE_FORMAT = """{
  "description": "Detailed description of what needs to be done (2-3 sentences)",
  "estimatedHours": 8,
  "tips": ["Practical tips for completing this task"]
}"""

_TASKS_FORMAT = """[
  {
    "title": "Task title",
    "description": "Task description",
    "priority": "HIGH|MEDIUM|LOW",
    "estimatedHours": 2,
    "order": 1,
    "milestoneName": "Name of an existing milestone, or a new one"
  }
]"""


def _joined(items: Sequence[str]) -> str:
    return ", ".join(items) if items else "None"


def build_plan_prompt(goal: str, timeframe: str | None = None) -> tuple[str, str]:
    timeframe_text = f"within {timeframe}" if timeframe else "with no specific timeframe"
    prompt = (
        f'Create a detailed, actionable plan for the following goal: "{goal}" '
        f"{timeframe_text}.\n\n"
        f"Respond in this JSON format:\n\n{_PLAN_FORMAT}\n\n{_PLAN_GUIDELINES}"
    )
    return PLAN_SYSTEM_PROMPT, prompt


def build_enhance_prompt(task_title: str, context: str) -> tuple[str, str]:
    prompt = (
        "Enhance this task with more details:\n\n"
        f'Task: "{task_title}"\n'
        f'Context: "{context}"\n\n'
        f"Respond in this JSON format:\n{_ENHANCE_FORMAT}"
    )
    return ENHANCE_SYSTEM_PROMPT, prompt


def build_next_steps_prompt(
    plan_title: str,
    completed_tasks: Sequence[str],
    remaining_tasks: Sequence[str],
) -> tuple[str, str]:
    prompt = (
        "Given the following plan progress, suggest 3-5 next steps or recommendations:\n\n"
        f'Plan: "{plan_title}"\n'
        f"Completed Tasks: {_joined(completed_tasks)}\n"
        f"Remaining Tasks: {_joined(remaining_tasks)}\n\n"
        "Respond with a JSON array of actionable suggestions:\n"
        '["Suggestion 1", "Suggestion 2", "Suggestion 3"]'
    )
    return NEXT_STEPS_SYSTEM_PROMPT, prompt


def build_tasks_prompt(
    plan_title: str,
    plan_goal: str,
    existing_tasks: Sequence[str],
    existing_milestones: Sequence[str],
    count: int | None = None,
) -> tuple[str, str]:
    prompt = (
        f"Generate {count or '3-5'} specific, actionable tasks for the following plan:\n\n"
        f'Plan Title: "{plan_title}"\n'
        f'Plan Goal: "{plan_goal}"\n'
        f"Existing Tasks: {_joined(existing_tasks)}\n"
        f"Existing Milestones: {_joined(existing_milestones)}\n"
        f"Number of Existing Milestones: {len(existing_milestones)}\n\n"
        f"Respond with a JSON array of tasks in this format:\n{_TASKS_FORMAT}\n\n"
        "Focus on tasks that are missing or are logical next steps. Prefer an "
        "existing milestone name; propose a new milestone name only when none fits."
    )
    return TASKS_SYSTEM_PROMPT, prompt


__all__ = [
    "build_plan_prompt",
    "build_enhance_prompt",
    "build_next_steps_prompt",
    "build_tasks_prompt",
]
