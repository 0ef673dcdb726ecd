import os

# Paths
ASSETS_PATH = 'assets'
IMAGES_FOLDER = 'images'
TRAIN_FOLDER = 'train'
TEST_FOLDER = 'test'
TRAIN_TAGS_FILE = 'tags.tsv'
TEST_TAGS_FILE = 'test-tags.tsv'
MODEL_FILE = 'waste_classifier.zip'
REPORTS_FOLDER = 'reports'
DOWNLOAD_GUIDE_FILE = 'CARA_DOWNLOAD_DATASET.txt'

IMAGES_PATH = os.path.join(ASSETS_PATH, IMAGES_FOLDER)
MODEL_PATH = os.path.join(ASSETS_PATH, MODEL_FILE)

# Dataset
# Order matters: it is the row order of every generated manifest.
CATEGORIES = ('plastik', 'kertas', 'logam', 'organik', 'kaca')
SPLITS = (TRAIN_FOLDER, TEST_FOLDER)
IMAGE_EXTENSIONS = frozenset({'.jpg', '.jpeg', '.png', '.bmp'})

# Manifest columns
IMAGE_PATH_COLUMN = 'ImagePath'
LABEL_COLUMN = 'Label'
MANIFEST_COLUMNS = (IMAGE_PATH_COLUMN, LABEL_COLUMN)

# Image settings
IMG_SIZE = (224, 224)

# Training
BACKBONE = 'ResNet101V2'
BACKBONE_WEIGHTS = 'imagenet'
EPOCHS = 10
BATCH_SIZE = 10
LEARNING_RATE = 0.01
RANDOM_SEED = 1

# Model artifact
ARTIFACT_FORMAT_VERSION = 1


def category_label(category):
    """Display form of a category, as written to manifests ('plastik' -> 'Plastik')"""
    return category[:1].upper() + category[1:]


def category_labels(categories=CATEGORIES):
    return [category_label(c) for c in categories]
