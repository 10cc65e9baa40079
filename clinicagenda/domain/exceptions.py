"""
Domain-specific exception hierarchy for the clinic agenda application.
"""


class ClinicAgendaError(Exception):
    """Base class for all application-level errors."""


class InvalidArgumentError(ClinicAgendaError, ValueError):
    """Raised when a caller passes an argument outside its allowed domain."""


class ConfigurationError(ClinicAgendaError):
    """Raised when the configuration file cannot be read or is invalid."""


class DoctorNotFoundError(ClinicAgendaError):
    """Raised when a doctor identifier does not match any configured doctor."""


class AppointmentSourceError(ClinicAgendaError):
    """Raised when appointment data cannot be fetched or parsed."""
