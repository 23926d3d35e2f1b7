class PreconditionViolation(RuntimeError):
    """Lifecycle calls made out of order."""
