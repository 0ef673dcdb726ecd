"""
Shared fixtures: tiny solid-color images and a deterministic trainer that
classifies by nearest mean color, so the pipeline runs without TensorFlow.
"""

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

import model_store
import train_models
from data_preparation import WasteDatasetSetup
from train_models import BackboneTrainer


RED = (220, 20, 20)
BLUE = (20, 20, 220)


class MeanColorTrainer(BackboneTrainer):
    """Nearest class-centroid on mean RGB; near one-hot probabilities"""

    name = 'test-mean-color'

    def __init__(self):
        self.fit_calls = 0
        self.seeds = []

    def fit(self, images, keys, num_classes, epochs=1, batch_size=1, seed=0):
        self.fit_calls += 1
        self.seeds.append(seed)
        features = images.mean(axis=(1, 2))
        centroids = np.stack([features[keys == k].mean(axis=0) for k in range(num_classes)])
        predicted = np.argmax(self.predict_proba(centroids, images), axis=1)
        accuracy = float(np.mean(predicted == keys))
        return centroids, {'accuracy': [accuracy] * epochs, 'loss': [0.0] * epochs}

    def predict_proba(self, head, images):
        features = images.mean(axis=(1, 2))
        distances = np.linalg.norm(features[:, None, :] - head[None, :, :], axis=2)
        logits = -distances
        logits -= logits.max(axis=1, keepdims=True)
        exp = np.exp(logits)
        return exp / exp.sum(axis=1, keepdims=True)

    def save(self, head, directory):
        np.save(Path(directory) / 'centroids.npy', head)

    def load(self, directory):
        return np.load(Path(directory) / 'centroids.npy')


class ExplodingTrainer(MeanColorTrainer):
    name = 'test-exploding'

    def fit(self, images, keys, num_classes, epochs=1, batch_size=1, seed=0):
        raise RuntimeError("out of memory")


def make_image(path, color, size=(16, 16)):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new('RGB', size, color).save(path)
    return path


@pytest.fixture
def trainer():
    return MeanColorTrainer()


@pytest.fixture
def assets(tmp_path):
    """Assets tree with red plastik / blue kertas images and generated manifests"""
    assets_path = tmp_path / 'assets'
    images = assets_path / 'images'
    make_image(images / 'train' / 'plastik' / '1.png', RED)
    make_image(images / 'train' / 'plastik' / '2.png', RED)
    make_image(images / 'train' / 'kertas' / '1.png', BLUE)
    make_image(images / 'train' / 'kertas' / '2.png', BLUE)
    make_image(images / 'test' / 'plastik' / '1.png', RED)
    make_image(images / 'test' / 'kertas' / '1.png', BLUE)
    WasteDatasetSetup(assets_path).setup()
    return assets_path


@pytest.fixture
def default_trainer(monkeypatch):
    """Make every component that falls back to the default trainer use MeanColorTrainer"""
    monkeypatch.setattr(train_models, 'get_default_trainer', MeanColorTrainer)
    monkeypatch.setattr(model_store, 'get_default_trainer', MeanColorTrainer)
