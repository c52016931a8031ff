"""
Synapse - spaced-repetition scheduling for vocabulary learning.

Packages:
- core: Shared domain models (MasteryStage)
- srs: SM-2 review outcome calculator and due-set selector
- delivery: SQLite persistence, review service, analytics
"""

__version__ = "1.0.0"
