from pathlib import Path

import numpy as np
import tensorflow as tf
from tensorflow import keras
from tensorflow.keras import layers, optimizers
from tensorflow.keras.applications import ResNet50V2, ResNet101V2, ResNet152V2

from config import BACKBONE, BACKBONE_WEIGHTS, EPOCHS, BATCH_SIZE, LEARNING_RATE, RANDOM_SEED
from train_models import BackboneTrainer


BACKBONES = {
    'ResNet50V2': ResNet50V2,
    'ResNet101V2': ResNet101V2,
    'ResNet152V2': ResNet152V2,
}


class KerasBackboneTrainer(BackboneTrainer):
    """
    Frozen ImageNet ResNet-v2 feature extractor with a trainable softmax head

    Training accuracy is tracked every epoch; no early stopping and no
    validation split, so the run always lasts the configured epochs.
    """

    MODEL_FILE = 'model.keras'

    def __init__(self, backbone=BACKBONE, weights=BACKBONE_WEIGHTS, learning_rate=LEARNING_RATE):
        if backbone not in BACKBONES:
            raise ValueError(f"Unknown backbone: {backbone}")
        self.backbone = backbone
        self.weights = weights
        self.learning_rate = learning_rate
        self.name = f'keras-{backbone}'

    def build_model(self, num_classes, img_shape):
        """Backbone (frozen) + global pooling + softmax head"""
        base_model = BACKBONES[self.backbone](
            include_top=False,
            weights=self.weights,
            input_shape=img_shape
        )
        base_model.trainable = False

        inputs = keras.Input(shape=img_shape)
        # ResNet-v2 expects pixels scaled to [-1, 1]
        x = layers.Rescaling(1. / 127.5, offset=-1.0, name='preprocess')(inputs)
        x = base_model(x, training=False)
        x = layers.GlobalAveragePooling2D(name='avg_pool')(x)
        outputs = layers.Dense(num_classes, activation='softmax', name='predictions')(x)

        return keras.Model(inputs, outputs, name=f'{self.backbone}_WasteClassifier')

    def fit(self, images, keys, num_classes, epochs=EPOCHS, batch_size=BATCH_SIZE, seed=RANDOM_SEED):
        keras.utils.set_random_seed(seed)

        model = self.build_model(num_classes, tuple(images.shape[1:]))
        model.compile(
            optimizer=optimizers.Adam(learning_rate=self.learning_rate),
            loss='sparse_categorical_crossentropy',
            metrics=['accuracy']
        )

        history = model.fit(
            images, np.asarray(keys, dtype=np.int32),
            epochs=epochs,
            batch_size=batch_size,
            shuffle=True,
            verbose=1
        )
        return model, history.history

    def predict_proba(self, head, images):
        # Direct call skips the predict() loop setup, which dominates for single images
        if len(images) <= BATCH_SIZE:
            return np.asarray(head(tf.convert_to_tensor(images), training=False))
        return head.predict(images, batch_size=BATCH_SIZE, verbose=0)

    def save(self, head, directory):
        head.save(str(Path(directory) / self.MODEL_FILE))

    def load(self, directory):
        return keras.models.load_model(str(Path(directory) / self.MODEL_FILE))
