"""Exception types raised by the converter and its collaborators."""


class Apigee2OpenApiError(Exception):
    """Base class for all converter errors"""


class MarkupError(Apigee2OpenApiError):
    """XML text could not be parsed into a tree"""


class ConditionSyntaxError(Apigee2OpenApiError):
    """A flow condition expression is not well formed"""

    def __init__(self, message: str, expression: str = '', position: int = -1):
        super().__init__(message)
        self.expression = expression
        self.position = position


class EndpointStructureError(Apigee2OpenApiError):
    """A proxy endpoint document lacks structure the resolver needs"""


class ArchiveError(Apigee2OpenApiError):
    """A proxy bundle could not be opened or read"""


class ApigeeApiError(Apigee2OpenApiError):
    """A call to the Apigee management API failed"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(Apigee2OpenApiError):
    """Required configuration is missing or invalid"""
