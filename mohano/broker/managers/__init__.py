"""Broker operations.

Each module provides plain functions over a resolved ``Workspace`` (or a
directory, for task files).  Managers raise domain exceptions from
``mohano.broker.errors``, never HTTP exceptions -- that translation is the
router's responsibility.
"""
