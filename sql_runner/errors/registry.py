# Custom library imports
from sql_runner.errors.detectors import DEFAULT_DETECTORS


class DetectorRegistry:
    """
    Ordered collection of detectors. The first registered detector whose
    ``can_handle`` returns True wins, so register specific detectors before
    generic ones.
    """

    def __init__(self, detectors=()):
        self._detectors = []
        self.register_all(detectors)

    def register(self, detector):
        self._detectors.append(detector)

    def register_all(self, detectors):
        for detector in detectors:
            self.register(detector)

    def find_detector(self, error, context):
        """Returns the first matching detector, or None."""
        for detector in self._detectors:
            if detector.can_handle(error, context):
                return detector
        return None

    @property
    def detectors(self):
        return tuple(self._detectors)

    def has_detector(self, name):
        return any(d.name == name for d in self._detectors)

    def __len__(self):
        return len(self._detectors)


def create_default_registry():
    """Registry with every built-in detector, most specific first."""
    return DetectorRegistry(DEFAULT_DETECTORS)
