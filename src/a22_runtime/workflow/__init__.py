"""Workflow execution."""

from .engine import WorkflowEngine, WorkflowRun
from .expressions import evaluate_attributes, evaluate_expression, resolve_path
from .handlers import call_tool_handler

__all__ = [
    "WorkflowEngine",
    "WorkflowRun",
    "call_tool_handler",
    "evaluate_attributes",
    "evaluate_expression",
    "resolve_path",
]
