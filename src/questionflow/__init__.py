"""
questionflow: conditional questionnaire flow engine.

Decides, at every step of a questionnaire session:
    - which question is shown next
    - whether an answer is acceptable
    - when the questionnaire is complete
    - whether rules spanning several questions still hold

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO knowledge of:
    - Terminal rendering or prompting
    - Durable storage
    - Analytics over stored responses

Those collaborators consume the objects exposed here
(questions, step results, session snapshots) unchanged.
"""

__version__ = "0.1.0"
