from collections import namedtuple
from pathlib import Path

import numpy as np

from config import MODEL_PATH, IMAGES_PATH
from disposal import format_disposal_advice
from errors import ImageNotFound, PredictionError
from model_store import ModelStore
from train_models import ImageLoader


PredictionResult = namedtuple(
    'PredictionResult',
    ['image_path', 'resolved_path', 'predicted_category', 'confidence', 'scores']
)


def resolve_image_path(image_path, images_path=IMAGES_PATH):
    """
    Find the file to classify

    The path is used as given when it exists, otherwise it is tried
    relative to the images root.

    Raises:
        ImageNotFound: neither location exists
    """
    candidate = Path(image_path)
    if candidate.is_file():
        return candidate

    fallback = Path(images_path) / str(image_path).replace('\\', '/')
    if fallback.is_file():
        return fallback

    raise ImageNotFound(f"Image not found: {image_path}")


def to_model_path(image_path, images_path=IMAGES_PATH):
    """
    Rewrite an existing image path into the form used in the manifests

    'assets/images/train/plastik/a.jpg' -> 'train/plastik/a.jpg' when the
    images root is 'assets/images'. Files outside the images root keep
    their absolute path.
    """
    resolved = Path(image_path).resolve()
    try:
        return resolved.relative_to(Path(images_path).resolve()).as_posix()
    except ValueError:
        return resolved.as_posix()


class WasteClassificationPredictor:
    """
    Loads the persisted model once and classifies single images

    Not thread-safe: callers sharing one instance across threads must
    serialize predict() calls themselves.
    """

    def __init__(self, model_path=MODEL_PATH, images_path=IMAGES_PATH, store=None):
        """
        Initialize predictor

        Args:
            model_path: Model artifact written by training
            images_path: Images root the model was trained against
            store: ModelStore to load with (default: Keras trainer)

        Raises:
            ModelNotFound: no usable artifact at model_path
        """
        self.model_path = Path(model_path)
        self.images_path = Path(images_path)

        store = store if store is not None else ModelStore()
        self.model, self.schema = store.load(self.model_path)
        self.image_loader = ImageLoader(self.images_path, self.model.img_size)

        print(f"✓ Model loaded from: {self.model_path}")
        print(f"  Classes: {', '.join(self.model.classes)}")

    def predict(self, image_path):
        """
        Classify one image

        Returns:
            PredictionResult

        Raises:
            ImageNotFound: image missing after the images-root fallback
            PredictionError: image could not be decoded or scored
        """
        resolved = resolve_image_path(image_path, self.images_path)
        model_path = to_model_path(resolved, self.images_path)

        try:
            image = self.image_loader.load_image(model_path)
            labels, probabilities = self.model.predict(image[np.newaxis, ...])
        except Exception as e:
            raise PredictionError(f"Prediction failed for {image_path}: {e}") from e

        scores = dict(zip(self.model.classes, probabilities[0].tolist()))
        return PredictionResult(
            image_path=str(image_path),
            resolved_path=model_path,
            predicted_category=labels[0],
            confidence=scores[labels[0]],
            scores=scores
        )

    def predict_batch(self, image_paths):
        """
        Classify several images, reporting failures instead of stopping

        Returns:
            List of PredictionResult for the images that succeeded
        """
        results = []
        print(f"\nPredicting {len(image_paths)} images...")
        for image_path in image_paths:
            try:
                result = self.predict(image_path)
            except (ImageNotFound, PredictionError) as e:
                print(f"❌ {e}")
                continue
            results.append(result)
            print(f"✓ {Path(image_path).name}: {result.predicted_category} ({result.confidence*100:.1f}%)")
        return results


def show_prediction(result):
    print("\n" + "="*60)
    print("PREDICTION RESULT")
    print("="*60)
    print(f"  Image    : {Path(result.image_path).name}")
    print(f"  Path     : {result.image_path}")
    print(f"  Category : {result.predicted_category}")
    print(f"  Confidence: {result.confidence*100:.1f}%")
    print("="*60 + "\n")
    print(format_disposal_advice(result.predicted_category))
    print()
