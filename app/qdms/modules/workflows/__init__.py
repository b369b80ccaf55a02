"""Workflow templates and the step-by-step review/approval runs built from them."""
