"""
PlanForge: goal planning with milestones, tasks and AI-drafted plans.

Packages:
- models: SQLAlchemy entities (Plan, Milestone, Task, TaskDependency, Resource, Settings)
- services: persistence, progress rollups, dependencies, backup, AI draft application
- ai: API key resolution and the hosted completion client
- api: FastAPI application and the httpx client for it
"""

__version__ = "0.1.0"
