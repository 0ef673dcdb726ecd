import csv
from pathlib import Path

import pandas as pd

from config import (
    ASSETS_PATH, IMAGES_FOLDER, TRAIN_FOLDER, TEST_FOLDER, TRAIN_TAGS_FILE,
    TEST_TAGS_FILE, DOWNLOAD_GUIDE_FILE, CATEGORIES, SPLITS, IMAGE_EXTENSIONS,
    IMAGE_PATH_COLUMN, LABEL_COLUMN, MANIFEST_COLUMNS,
    category_label, category_labels
)
from errors import LoadError


UNLISTABLE_CHARS = ('\t', '\r', '\n')

DOWNLOAD_GUIDE = """\
===============================================================
WASTE DATASET DOWNLOAD GUIDE
===============================================================

RECOMMENDED SOURCES:

1. Kaggle - Waste Classification Data
   URL: https://www.kaggle.com/datasets/techsash/waste-classification-data

2. GitHub - TrashNet
   URL: https://github.com/garythung/trashnet

3. Roboflow Universe
   URL: https://universe.roboflow.com/search?q=trash

STEPS:
1. Pick one of the sources above
2. Download the dataset (usually a ZIP archive)
3. Extract it
4. Move the images into the matching folders:

{folders}

5. Do the same for the test/ folders
6. Run setup again: deteksi-sampah setup

RECOMMENDED AMOUNTS:
- Training: at least 100 images per category
- Test: at least 20 images per category

===============================================================
"""


class WasteDatasetSetup:
    """
    Bootstraps the assets folder tree and writes one tab-separated
    manifest (ImagePath, Label) per split from the images found on disk
    """

    def __init__(self, assets_path=ASSETS_PATH, categories=CATEGORIES):
        """
        Initialize dataset setup

        Args:
            assets_path: Root folder holding images/ and the model artifact
            categories: Ordered category names; also the manifest row order
        """
        self.assets_path = Path(assets_path)
        self.images_path = self.assets_path / IMAGES_FOLDER
        self.categories = tuple(categories)
        self.manifest_paths = {
            TRAIN_FOLDER: self.images_path / TRAIN_TAGS_FILE,
            TEST_FOLDER: self.images_path / TEST_TAGS_FILE,
        }

    def create_directories(self):
        """Create root, per-split and per-category folders (idempotent)"""
        print("[1] Creating folder structure...")
        for split in SPLITS:
            for category in self.categories:
                (self.images_path / split / category).mkdir(parents=True, exist_ok=True)
        print(f"   ✓ Folder structure ready in: {self.images_path}")

    def scan_images(self, split):
        """
        Collect accepted image files of one split, per category

        A missing category folder yields an empty list, not an error.
        Names containing a tab or line break cannot be written to a TSV
        manifest; they are skipped with a warning.

        Args:
            split: 'train' or 'test'

        Returns:
            Dict category -> sorted list of image Paths
        """
        images_by_category = {}
        for category in self.categories:
            category_path = self.images_path / split / category
            images = []
            if category_path.is_dir():
                for f in sorted(category_path.iterdir()):
                    if not f.is_file() or f.suffix.lower() not in IMAGE_EXTENSIONS:
                        continue
                    if any(ch in f.name for ch in UNLISTABLE_CHARS):
                        print(f"   ⚠️ Skipped {f.name!r} in {split}/{category}: tabs and line breaks are not allowed in manifest paths")
                        continue
                    images.append(f)
            images_by_category[category] = images
        return images_by_category

    def build_manifest(self, images_by_category):
        """
        Turn scanned images into manifest rows

        Args:
            images_by_category: Output of scan_images()

        Returns:
            DataFrame with ImagePath (relative to images root, forward
            slashes) and Label (capitalized category) columns
        """
        rows = []
        for category in self.categories:
            label = category_label(category)
            for img_path in images_by_category.get(category, []):
                rows.append({
                    IMAGE_PATH_COLUMN: img_path.relative_to(self.images_path).as_posix(),
                    LABEL_COLUMN: label
                })
        return pd.DataFrame(rows, columns=list(MANIFEST_COLUMNS))

    def write_manifest(self, manifest, output_path):
        """Write a manifest as UTF-8 TSV with an ImagePath/Label header"""
        output_path = Path(output_path)
        manifest.to_csv(
            output_path, sep='\t', index=False, encoding='utf-8',
            lineterminator='\n', quoting=csv.QUOTE_NONE
        )
        print(f"✓ {output_path.name} written ({len(manifest)} rows)")

    def summarize(self, scanned):
        """
        Per-category image counts for every split

        Args:
            scanned: Dict split -> output of scan_images()

        Returns:
            DataFrame indexed by category label, one column per split
        """
        summary = pd.DataFrame(
            {
                split.capitalize(): [len(scanned[split][c]) for c in self.categories]
                for split in scanned
            },
            index=category_labels(self.categories)
        )
        summary.index.name = 'Category'
        return summary

    def show_summary(self, summary):
        print("\n[Dataset Summary]")
        print(summary.to_string())
        empty = summary.index[(summary == 0).any(axis=1)].tolist()
        if empty:
            print(f"\n⚠️ No images yet for: {', '.join(empty)}")
            print("   Training will fail for categories without training images.")

    def create_download_guide(self):
        """Write a plain-text guide telling where to get and put images"""
        folders = "\n".join(
            f"   {(self.images_path / TRAIN_FOLDER / c).as_posix()}/   <- {category_label(c)} waste images"
            for c in self.categories
        )
        guide_path = self.assets_path / DOWNLOAD_GUIDE_FILE
        guide_path.write_text(DOWNLOAD_GUIDE.format(folders=folders), encoding='utf-8')
        print(f"\n✓ Download guide saved to: {guide_path}")
        return guide_path

    def setup(self):
        """
        Complete setup: folders, manifests, summary and download guide

        Returns:
            Dict split -> manifest DataFrame
        """
        print("="*60)
        print("WASTE CLASSIFICATION - DATASET SETUP")
        print("="*60)

        self.create_directories()

        scanned = {split: self.scan_images(split) for split in SPLITS}
        manifests = {}
        for split in SPLITS:
            manifests[split] = self.build_manifest(scanned[split])
            print(f"\n✓ Found {len(manifests[split])} {split} images")

        print()
        for split in SPLITS:
            self.write_manifest(manifests[split], self.manifest_paths[split])

        self.show_summary(self.summarize(scanned))
        self.create_download_guide()

        print("\n" + "="*60)
        print("DATASET SETUP COMPLETE!")
        print("="*60)

        return manifests


def load_manifest(manifest_path, categories=CATEGORIES):
    """
    Read a manifest file into an ordered DataFrame

    Image files are not checked here; the image-loading stage of the
    pipeline does that per row.

    Args:
        manifest_path: Path to a TSV manifest with an ImagePath/Label header
        categories: Categories whose display labels are accepted

    Returns:
        DataFrame with ImagePath and Label columns, in file order

    Raises:
        LoadError: missing/unreadable file, wrong header or field count, unknown label,
            empty path, or one path listed under two different labels
    """
    manifest_path = Path(manifest_path)
    if not manifest_path.is_file():
        raise LoadError(f"Manifest not found: {manifest_path}")

    # The header is read as a data row so that every line must have the same field count
    try:
        raw = pd.read_csv(
            manifest_path, sep='\t', header=None, index_col=False, dtype=str,
            keep_default_na=False, quoting=csv.QUOTE_NONE, encoding='utf-8-sig'
        )
    except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise LoadError(f"Cannot read manifest {manifest_path}: {e}") from e

    header = raw.iloc[0].tolist()
    if raw.shape[1] != len(MANIFEST_COLUMNS) or header != list(MANIFEST_COLUMNS):
        raise LoadError(
            f"Manifest {manifest_path} must start with the header "
            f"'{IMAGE_PATH_COLUMN}\\t{LABEL_COLUMN}', got {header}"
        )

    df = raw.iloc[1:].fillna('')
    df.columns = list(MANIFEST_COLUMNS)

    # Index i is line i + 1 of the file
    empty_paths = df.index[df[IMAGE_PATH_COLUMN].str.len() == 0]
    if len(empty_paths):
        raise LoadError(f"Manifest {manifest_path}: empty image path on line {empty_paths[0] + 1}")

    allowed = set(category_labels(categories))
    unknown = df.loc[~df[LABEL_COLUMN].isin(allowed), LABEL_COLUMN].unique().tolist()
    if unknown:
        raise LoadError(f"Manifest {manifest_path}: unknown label(s) {unknown}")

    labels_per_path = df.groupby(IMAGE_PATH_COLUMN)[LABEL_COLUMN].nunique()
    conflicting = labels_per_path[labels_per_path > 1].index.tolist()
    if conflicting:
        raise LoadError(
            f"Manifest {manifest_path}: path(s) listed under different labels: {conflicting[:5]}"
        )

    print(f"    ✓ Loaded {len(df)} images from {manifest_path.name}")
    return df.reset_index(drop=True)
