"""Report module for comparison outcomes.

This package contains:
- outcome: OutcomeKind and ComparisonOutcome, one per reported file
- writer: ReportWriter, the append-only results and errors files
"""
