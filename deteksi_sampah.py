import argparse
import sys
import traceback
from pathlib import Path

from config import (
    ASSETS_PATH, IMAGES_FOLDER, TRAIN_TAGS_FILE, TEST_TAGS_FILE, MODEL_FILE,
    REPORTS_FOLDER, EPOCHS, BATCH_SIZE, RANDOM_SEED
)
from data_preparation import WasteDatasetSetup, load_manifest
from errors import (
    WasteClassifierError, DatasetNotSetup, TrainingFailure, ModelNotFound,
    ImageNotFound, PredictionError
)
from evaluate import WasteModelEvaluator
from model_store import ModelStore
from predict import WasteClassificationPredictor, show_prediction
from train_models import WasteClassificationPipeline


def print_banner():
    print("="*60)
    print("WASTE DETECTION SYSTEM")
    print("="*60 + "\n")


def run_training(assets_path=ASSETS_PATH, epochs=EPOCHS, batch_size=BATCH_SIZE,
                 seed=RANDOM_SEED, trainer=None, store=None):
    """
    Train, evaluate and persist a model from the manifests under assets_path

    The artifact is written only after fit and evaluation both succeed.

    Returns:
        (TrainedModel, EvaluationMetrics, artifact path)

    Raises:
        DatasetNotSetup: manifests are missing
        LoadError: a manifest is malformed
        TrainingFailure: fitting, evaluation or saving failed
    """
    assets_path = Path(assets_path)
    images_path = assets_path / IMAGES_FOLDER
    train_tags = images_path / TRAIN_TAGS_FILE
    test_tags = images_path / TEST_TAGS_FILE
    model_path = assets_path / MODEL_FILE

    if not train_tags.is_file() or not test_tags.is_file():
        raise DatasetNotSetup(f"Manifests not found in {images_path}")

    print("[1] Loading dataset...")
    train_manifest = load_manifest(train_tags)
    test_manifest = load_manifest(test_tags)

    print("\n[2] Training model...")
    pipeline = WasteClassificationPipeline(
        images_path, trainer=trainer, epochs=epochs, batch_size=batch_size, seed=seed
    )
    model = pipeline.fit(train_manifest)

    print("\n[3] Evaluating model...")
    evaluator = WasteModelEvaluator(images_path, reports_path=assets_path / REPORTS_FOLDER)
    metrics = evaluator.evaluate(model, test_manifest)

    print("\n[4] Saving model...")
    store = store if store is not None else ModelStore(pipeline.trainer)
    try:
        store.save(model, model.schema, model_path)
    except OSError as e:
        raise TrainingFailure(f"Cannot save model to {model_path}: {e}") from e

    print("\n✓ TRAINING COMPLETE!")
    print(f"Model saved to: {model_path}")
    return model, metrics, model_path


def setup_command(args):
    WasteDatasetSetup(args.assets_path).setup()
    return 0


def predict_command(args):
    assets_path = Path(args.assets_path)
    try:
        predictor = WasteClassificationPredictor(
            assets_path / MODEL_FILE, assets_path / IMAGES_FOLDER
        )
    except ModelNotFound as e:
        print(f"❌ {e}")
        print("Train a model first with: deteksi-sampah")
        return 1

    status = 0
    for image_path in args.images:
        try:
            result = predictor.predict(image_path)
        except ImageNotFound as e:
            print(f"❌ {e}")
            status = 1
            continue
        except PredictionError as e:
            print(f"❌ Error during prediction: {e}")
            status = 1
            continue
        show_prediction(result)
    return status


def train_command(args):
    try:
        run_training(args.assets_path, epochs=args.epochs, batch_size=args.batch_size, seed=args.seed)
    except DatasetNotSetup:
        print("⚠️ Dataset is not set up yet!")
        print("Run: deteksi-sampah setup")
        return 0
    except WasteClassifierError as e:
        print(f"\n❌ ERROR: {e}")
        return 1
    except Exception as e:
        print(f"\n❌ ERROR: {e}")
        traceback.print_exc()
        return 1
    return 0


def add_common_options(parser, defaults=True):
    """
    Options accepted before and after a subcommand

    Subcommands get suppressed defaults so they do not overwrite values
    given before the subcommand name.
    """
    def default(value):
        return value if defaults else argparse.SUPPRESS

    parser.add_argument('--assets-path', type=str, default=default(ASSETS_PATH),
                        help=f'Assets root holding images/ and the model (default: {ASSETS_PATH})')
    parser.add_argument('--epochs', type=int, default=default(EPOCHS),
                        help=f'Training epochs (default: {EPOCHS})')
    parser.add_argument('--batch-size', type=int, default=default(BATCH_SIZE),
                        help=f'Training batch size (default: {BATCH_SIZE})')
    parser.add_argument('--seed', type=int, default=default(RANDOM_SEED),
                        help=f'Random seed (default: {RANDOM_SEED})')


def build_parser():
    parser = argparse.ArgumentParser(
        prog='deteksi-sampah',
        description='Train and run a waste image classifier',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create folders and manifests from the images already in assets/images
  deteksi-sampah setup

  # Train, evaluate and save the model
  deteksi-sampah --epochs 10

  # Classify an image
  deteksi-sampah predict assets/images/test/plastik/bottle.jpg
        """
    )
    add_common_options(parser)

    subparsers = parser.add_subparsers(dest='command')
    setup_parser = subparsers.add_parser('setup', help='Build folder skeleton and manifests')
    add_common_options(setup_parser, defaults=False)
    predict_parser = subparsers.add_parser('predict', help='Classify image(s) with the saved model')
    add_common_options(predict_parser, defaults=False)
    predict_parser.add_argument('images', nargs='+', help='Image path(s), absolute or relative to the images root')

    return parser


def main(argv=None):
    """Main execution function"""
    args = build_parser().parse_args(argv)
    print_banner()

    if args.command == 'setup':
        return setup_command(args)
    if args.command == 'predict':
        return predict_command(args)
    return train_command(args)


if __name__ == "__main__":
    sys.exit(main())
