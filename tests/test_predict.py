from pathlib import Path

import numpy as np
import pytest

from conftest import RED, MeanColorTrainer, make_image
from data_preparation import load_manifest
from errors import ImageNotFound, ModelNotFound, PredictionError
from model_store import ModelStore
from predict import WasteClassificationPredictor, resolve_image_path, to_model_path
from train_models import ImageLoader, WasteClassificationPipeline


@pytest.fixture
def saved_model(assets, trainer):
    images_path = assets / 'images'
    pipeline = WasteClassificationPipeline(images_path, trainer=trainer, img_size=(8, 8), epochs=1)
    model = pipeline.fit(load_manifest(images_path / 'tags.tsv'))
    path = assets / 'waste_classifier.zip'
    ModelStore(trainer).save(model, model.schema, path)
    return model, path


@pytest.fixture
def predictor(assets, saved_model):
    _, path = saved_model
    return WasteClassificationPredictor(path, assets / 'images', store=ModelStore(MeanColorTrainer()))


class TestPathResolution:
    def test_marker_path_is_made_relative_to_images_root(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        make_image(tmp_path / 'assets' / 'images' / 'train' / 'plastik' / 'a.jpg', RED)

        assert to_model_path('assets/images/train/plastik/a.jpg', 'assets/images') == 'train/plastik/a.jpg'

    def test_absolute_path_inside_images_root(self, tmp_path):
        image = make_image(tmp_path / 'assets' / 'images' / 'test' / 'kaca' / 'b.png', RED)

        assert to_model_path(str(image), tmp_path / 'assets' / 'images') == 'test/kaca/b.png'

    def test_repeated_marker_segment_is_not_ambiguous(self, tmp_path):
        root = tmp_path / 'assets' / 'images'
        image = make_image(root / 'train' / 'assets' / 'images' / 'c.png', RED)

        assert to_model_path(image, root) == 'train/assets/images/c.png'

    def test_path_outside_images_root_stays_absolute(self, tmp_path):
        image = make_image(tmp_path / 'downloads' / 'photo.png', RED)

        assert to_model_path(image, tmp_path / 'assets' / 'images') == image.resolve().as_posix()

    def test_existing_path_is_used_verbatim(self, tmp_path):
        image = make_image(tmp_path / 'photo.png', RED)

        assert resolve_image_path(str(image), tmp_path / 'images') == image

    def test_falls_back_to_images_root(self, tmp_path):
        root = tmp_path / 'images'
        image = make_image(root / 'test' / 'logam' / 'can.png', RED)

        assert resolve_image_path('test/logam/can.png', root) == image

    def test_unresolvable_path(self, tmp_path):
        with pytest.raises(ImageNotFound, match="nowhere.png"):
            resolve_image_path('nowhere.png', tmp_path)


def test_predict_without_artifact(tmp_path):
    with pytest.raises(ModelNotFound):
        WasteClassificationPredictor(tmp_path / 'waste_classifier.zip', tmp_path, store=ModelStore(MeanColorTrainer()))


def test_reloaded_model_predicts_like_fitted_model(assets, saved_model, predictor):
    model, _ = saved_model
    image = ImageLoader(assets / 'images', (8, 8)).load_image('test/kertas/1.png')
    expected_labels, expected_probabilities = model.predict(image[np.newaxis])

    result = predictor.predict(str(assets / 'images' / 'test' / 'kertas' / '1.png'))

    assert result.predicted_category == expected_labels[0] == 'Kertas'
    assert result.resolved_path == 'test/kertas/1.png'
    assert result.scores == dict(zip(model.classes, expected_probabilities[0].tolist()))
    assert result.confidence == pytest.approx(1.0)


def test_predict_many_times_with_one_engine(predictor):
    first = predictor.predict('test/plastik/1.png')
    second = predictor.predict('test/plastik/1.png')

    assert first == second
    assert first.predicted_category == 'Plastik'
    assert first.image_path == 'test/plastik/1.png'


def test_predict_image_outside_images_root(predictor, tmp_path):
    outside = make_image(tmp_path / 'phone' / 'snap.png', RED)

    assert predictor.predict(outside).predicted_category == 'Plastik'


def test_predict_missing_image(predictor):
    with pytest.raises(ImageNotFound):
        predictor.predict('test/plastik/missing.png')


def test_predict_corrupt_image(predictor, assets):
    broken = assets / 'images' / 'test' / 'kaca' / 'broken.png'
    broken.write_bytes(b'definitely not a png')

    with pytest.raises(PredictionError):
        predictor.predict(str(broken))


def test_predict_batch_skips_failures(predictor):
    results = predictor.predict_batch(['test/plastik/1.png', 'test/plastik/missing.png', 'test/kertas/1.png'])

    assert [r.predicted_category for r in results] == ['Plastik', 'Kertas']
    assert [Path(r.resolved_path).name for r in results] == ['1.png', '1.png']
