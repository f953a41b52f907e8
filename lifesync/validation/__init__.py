from lifesync.validation.validator import EnvelopeValidationError, EnvelopeValidator

__all__ = ["EnvelopeValidationError", "EnvelopeValidator"]
