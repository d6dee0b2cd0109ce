"""AI summaries and reports."""

from timesheet_ai.analysis.report import generate_report
from timesheet_ai.analysis.summarizer import GeminiSummarizer, Summarizer

__all__ = ["generate_report", "Summarizer", "GeminiSummarizer"]
