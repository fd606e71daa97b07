"""Tests for commands module.

Test Files and Coverage:
========================

| Test File              | Test Classes      | Tested Constructs             | Tested Functionalities                      |
|------------------------|-------------------|-------------------------------|---------------------------------------------|
| test_compare_dirs.py   | CompareDirsTest   | do_compare, CompareProcessor  | Classification, staleness, one outcome/file |
"""
