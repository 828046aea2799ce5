"""Domain exceptions raised by the service layer."""


class RidewayError(Exception):
    """Base class for service-layer errors."""


class ValidationError(RidewayError):
    """Input rejected before any mutation (bad shape, mileage regression)."""


class NotFoundError(RidewayError):
    """Referenced task, motorcycle, integration or user does not exist for the caller."""


class IntegrationConfigError(RidewayError):
    """Stored integration config cannot be decrypted or does not fit its type."""


class TemplateError(RidewayError):
    """Payload template could not be rendered."""
