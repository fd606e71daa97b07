"""Tests for report module.

Test Files and Coverage:
========================

| Test File          | Test Classes          | Tested Constructs               | Tested Functionalities                  |
|--------------------|-----------------------|---------------------------------|-----------------------------------------|
| test_outcome.py    | ComparisonOutcomeTest | ComparisonOutcome, OutcomeKind  | Report line rendering, reported path    |
| test_writer.py     | ReportWriterTest      | ReportWriter                    | Append mode, routing, line atomicity    |
"""
