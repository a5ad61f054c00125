"""
Typed errors for the Canine Kernel.

Every error belongs to one of three classes so callers can tell them apart:
  - DegradedInputError:      sensing is noisy or missing (keep going, neutral behavior)
  - ContentUnavailableError: nothing to play right now (retryable)
  - ConfigurationError:      inputs are malformed (fix the configuration)
"""


class KernelError(Exception):
    """Base class for all Canine Kernel errors."""

    retryable = False


class DegradedInputError(KernelError):
    """Behavioral input is unreliable."""
    pass


class ContentUnavailableError(KernelError):
    """No content can be selected at the moment."""

    retryable = True


class ConfigurationError(KernelError):
    """A configuration or reference-data defect."""
    pass


class LowConfidenceObservation(DegradedInputError):
    """An observation was below the fusion engine's confidence floor."""

    def __init__(self, confidence: float, min_confidence: float):
        self.confidence = confidence
        self.min_confidence = min_confidence
        super().__init__(
            f"Observation confidence {confidence:.2f} is below "
            f"the minimum of {min_confidence:.2f}; discarded."
        )


class StaleBehaviorState(DegradedInputError):
    """The observation stream stalled beyond the configured timeout."""

    def __init__(self, seconds_since_update: float):
        self.seconds_since_update = seconds_since_update
        super().__init__(
            f"No accepted observation for {seconds_since_update:.1f}s; "
            f"behavior treated as neutral."
        )


class NoEligibleContentError(ContentUnavailableError):
    """The candidate pool was empty after category fallback."""

    def __init__(self, category: str, tried: list):
        self.category = category
        self.tried = tried
        super().__init__(
            f"No eligible content for category '{category}' "
            f"(tried: {', '.join(tried) or 'none'})."
        )


class ScheduleBuildError(ConfigurationError):
    """A schedule could not be built or failed its invariants."""
    pass
