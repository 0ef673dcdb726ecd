import random
import time
from pathlib import Path

import numpy as np
from PIL import Image
from sklearn.preprocessing import LabelEncoder
from tqdm import tqdm

from config import (
    IMAGES_PATH, IMG_SIZE, EPOCHS, BATCH_SIZE, RANDOM_SEED, CATEGORIES,
    IMAGE_PATH_COLUMN, LABEL_COLUMN, MANIFEST_COLUMNS, category_labels
)
from errors import TrainingFailure


class BackboneTrainer:
    """
    Black-box image classification trainer (pretrained backbone + label head)

    The pipeline only talks to this interface, so any implementation that
    fits, scores and (de)serializes a head can be plugged in.
    """

    name = 'base'

    def fit(self, images, keys, num_classes, epochs=EPOCHS, batch_size=BATCH_SIZE, seed=RANDOM_SEED):
        """
        Fit a classification head on decoded images

        Args:
            images: Float array (n, height, width, 3) with raw [0, 255] pixels
            keys: Integer label keys, shape (n,)
            num_classes: Size of the label head
            epochs: Number of passes over the training set
            batch_size: Mini-batch size
            seed: Random seed

        Returns:
            (fitted head, history dict of per-epoch metric lists)
        """
        raise NotImplementedError

    def predict_proba(self, head, images):
        """Class probabilities, shape (n, num_classes)"""
        raise NotImplementedError

    def save(self, head, directory):
        """Serialize a fitted head into an existing directory"""
        raise NotImplementedError

    def load(self, directory):
        """Inverse of save()"""
        raise NotImplementedError


def get_default_trainer():
    from backbone import KerasBackboneTrainer
    return KerasBackboneTrainer()


def set_random_seed(seed):
    random.seed(seed)
    np.random.seed(seed)


class ImageLoader:
    """
    Decodes images referenced by manifest paths (relative to the images root)
    """

    def __init__(self, images_path=IMAGES_PATH, img_size=IMG_SIZE):
        self.images_path = Path(images_path)
        self.img_size = tuple(img_size)

    def resolve(self, image_path):
        # Joining keeps absolute paths untouched
        return self.images_path / image_path

    def load_image(self, image_path):
        """
        Load a single image as an RGB float array resized to img_size

        Raises:
            OSError: file missing or not decodable as an image
        """
        full_path = self.resolve(image_path)
        with Image.open(full_path) as img:
            img = img.convert('RGB').resize(self.img_size)
            return np.asarray(img, dtype=np.float32)

    def load(self, image_paths, desc="Loading images"):
        """
        Load many images, stopping at the first one that fails

        Returns:
            Array (n, height, width, 3)
        """
        image_paths = list(image_paths)
        if not image_paths:
            return np.empty((0, *self.img_size[::-1], 3), dtype=np.float32)

        images = [self.load_image(p) for p in tqdm(image_paths, desc=desc, disable=len(image_paths) < 2)]
        return np.stack(images)


def make_label_encoder(classes):
    """LabelEncoder with a fixed key order (key i -> classes[i])"""
    label_encoder = LabelEncoder()
    label_encoder.classes_ = np.asarray(classes, dtype=object)
    return label_encoder


def ordered_classes(labels, categories=CATEGORIES):
    """
    Distinct labels in category enumeration order

    Labels outside the enumeration come last, sorted.
    """
    present = set(labels)
    classes = [label for label in category_labels(categories) if label in present]
    return classes + sorted(present - set(classes))


def build_schema(classes, img_size=IMG_SIZE):
    """Input layout the fitted model expects at scoring time"""
    return {
        'columns': [{'name': name, 'type': 'string'} for name in MANIFEST_COLUMNS],
        'image_column': IMAGE_PATH_COLUMN,
        'label_column': LABEL_COLUMN,
        'image_size': list(img_size),
        'labels': list(classes),
    }


class TrainedModel:
    """
    A fitted pipeline: label encoding table + fitted backbone/head

    Immutable after fitting; evaluation and inference only read it.
    """

    def __init__(self, classes, head, trainer, schema, history=None, training_config=None):
        self.label_encoder = make_label_encoder(classes)
        self.head = head
        self.trainer = trainer
        self.schema = schema
        self.history = history or {}
        self.training_config = training_config or {}

    @property
    def classes(self):
        return self.label_encoder.classes_.tolist()

    @property
    def num_classes(self):
        return len(self.label_encoder.classes_)

    @property
    def img_size(self):
        return tuple(self.schema['image_size'])

    def encode(self, labels):
        """
        Map labels to their integer keys

        Raises:
            ValueError: a label was never seen at training time
        """
        return self.label_encoder.transform(list(labels))

    def decode(self, keys):
        return self.label_encoder.inverse_transform(np.asarray(keys, dtype=int)).tolist()

    def predict_proba(self, images):
        return np.asarray(self.trainer.predict_proba(self.head, images), dtype=np.float64)

    def predict(self, images):
        """
        Predicted labels and their probability matrix

        Returns:
            (list of labels, array (n, num_classes))
        """
        probabilities = self.predict_proba(images)
        return self.decode(np.argmax(probabilities, axis=1)), probabilities


class WasteClassificationPipeline:
    """
    Label encoding -> raw image loading -> backbone fine-tuning -> label decoding
    """

    def __init__(self, images_path=IMAGES_PATH, trainer=None, img_size=IMG_SIZE,
                 epochs=EPOCHS, batch_size=BATCH_SIZE, seed=RANDOM_SEED, categories=CATEGORIES):
        """
        Initialize pipeline

        Args:
            images_path: Root that manifest paths are relative to
            trainer: BackboneTrainer (default: Keras ResNet101V2)
            img_size: Backbone input size (width, height)
            epochs: Training epochs
            batch_size: Mini-batch size
            seed: Random seed for reproducible runs
            categories: Category enumeration; fixes the label key order
        """
        self.image_loader = ImageLoader(images_path, img_size)
        self.trainer = trainer if trainer is not None else get_default_trainer()
        self.img_size = tuple(img_size)
        self.epochs = epochs
        self.batch_size = batch_size
        self.seed = seed
        self.categories = tuple(categories)

    def training_config(self):
        return {
            'trainer': self.trainer.name,
            'image_size': list(self.img_size),
            'epochs': self.epochs,
            'batch_size': self.batch_size,
            'seed': self.seed,
        }

    def fit(self, manifest):
        """
        Fit the full pipeline on a training manifest

        Args:
            manifest: DataFrame with ImagePath and Label columns

        Returns:
            TrainedModel

        Raises:
            TrainingFailure: empty manifest, undecodable image or trainer error
        """
        print("\n" + "="*60)
        print(f"Training {self.trainer.name}")
        print("="*60)

        if len(manifest) == 0:
            raise TrainingFailure("Training manifest has no rows; add images and run setup")

        set_random_seed(self.seed)

        labels = manifest[LABEL_COLUMN].tolist()
        classes = ordered_classes(labels, self.categories)
        keys = make_label_encoder(classes).transform(labels)
        print(f"Classes ({len(classes)}): {classes}")

        try:
            images = self.image_loader.load(manifest[IMAGE_PATH_COLUMN], desc="Loading training images")
        except OSError as e:
            raise TrainingFailure(f"Cannot load training image: {e}") from e

        print(f"Training on {len(images)} images for {self.epochs} epochs...")
        start_time = time.time()
        try:
            head, history = self.trainer.fit(
                images, keys, len(classes),
                epochs=self.epochs, batch_size=self.batch_size, seed=self.seed
            )
        except Exception as e:
            raise TrainingFailure(f"{self.trainer.name} training failed: {e}") from e
        training_time = time.time() - start_time

        history = {k: [float(v) for v in vals] for k, vals in (history or {}).items()}
        print(f"\n✓ Training time: {training_time/60:.2f} minutes")
        if history.get('accuracy'):
            print(f"✓ Final training accuracy: {history['accuracy'][-1]:.4f}")

        return TrainedModel(
            classes, head, self.trainer,
            schema=build_schema(classes, self.img_size),
            history=history,
            training_config=self.training_config()
        )
