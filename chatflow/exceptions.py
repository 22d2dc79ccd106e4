"""
Exceptions for the Chatbot Flow Builder.

Expected conditions (missing ids, invalid flows) are reported through
return values. These exceptions cover programming errors and failures
outside the graph model.
"""


class FlowBuilderError(Exception):
    """Base exception for flow builder errors."""
    pass


class GraphIntegrityError(FlowBuilderError):
    """A candidate snapshot breaks a structural invariant."""
    pass


class UnknownNodeKindError(FlowBuilderError):
    """Node kind is not registered."""
    pass


class FlowStorageError(FlowBuilderError):
    """Storage collaborator rejected or failed a request."""
    pass
