"""
Dialog Engine Exceptions
========================
Failures raised by collaborators and internal components. The router
converts every one of these into a localized reply; none reaches the customer.
"""


class DialogEngineError(Exception):
    """Base class for dialog engine failures"""
    pass


class CollaboratorError(DialogEngineError):
    """An external collaborator (detector, classifier, data source) failed"""

    def __init__(self, collaborator: str, message: str = ""):
        self.collaborator = collaborator
        super().__init__(f"[{collaborator}] {message}" if message else f"[{collaborator}] failed")


class CollaboratorTimeoutError(CollaboratorError):
    """A collaborator call exceeded its bounded timeout"""
    pass


class InvalidChoiceError(DialogEngineError):
    """A button payload does not match the session's current state"""

    def __init__(self, choice_id: str, state: str):
        self.choice_id = choice_id
        self.state = state
        super().__init__(f"Choice '{choice_id}' is not valid in state '{state}'")


class TemplateNotFoundError(DialogEngineError):
    """No template exists for the key in the requested or default language"""
    pass


class InvalidTransitionError(DialogEngineError):
    """A session was asked to move to a state it cannot reach"""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from '{current}' to '{target}'")
