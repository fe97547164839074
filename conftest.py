"""
Root conftest - keeps the repository root importable so tests can use the
``examples`` package and the helpers in ``tests.conftest``.
"""
