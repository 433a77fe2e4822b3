"""AI Agents package."""

from fintrack.agents.assistant import FinancialAssistant, build_prompt, spending_by_category

__all__ = [
    "FinancialAssistant",
    "build_prompt",
    "spending_by_category",
]
