class WasteClassifierError(Exception):
    """Base class for all waste classifier failures"""


class DatasetNotSetup(WasteClassifierError):
    """Manifests are missing; run the setup step first"""


class LoadError(WasteClassifierError):
    """A manifest file is absent, unreadable or malformed"""


class TrainingFailure(WasteClassifierError):
    """Fitting or evaluating the classification pipeline failed"""


class ModelNotFound(WasteClassifierError):
    """No usable model artifact at the expected location"""


class ImageNotFound(WasteClassifierError):
    """The image to classify does not exist, even relative to the images root"""


class PredictionError(WasteClassifierError):
    """Scoring a resolved image failed"""
