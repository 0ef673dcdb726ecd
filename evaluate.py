import json
from collections import namedtuple
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from sklearn.metrics import accuracy_score, confusion_matrix, classification_report

from config import IMAGES_PATH, IMAGE_PATH_COLUMN, LABEL_COLUMN
from errors import TrainingFailure
from train_models import ImageLoader


LOG_LOSS_EPS = 1e-15

EvaluationMetrics = namedtuple(
    'EvaluationMetrics',
    ['macro_accuracy', 'micro_accuracy', 'log_loss', 'per_class_accuracy', 'confusion_matrix']
)


def calculate_metrics(y_true, probabilities, class_names):
    """
    Multiclass metrics from true keys and predicted probabilities

    Args:
        y_true: True label keys, shape (n,)
        probabilities: Predicted distribution, shape (n, num_classes)
        class_names: Label of each key, in key order

    Returns:
        EvaluationMetrics. Macro accuracy averages per-class accuracy over
        the classes present in y_true; micro accuracy is correct / total;
        log loss is the mean negative log-likelihood of the true class.
    """
    y_true = np.asarray(y_true, dtype=int)
    probabilities = np.asarray(probabilities, dtype=np.float64)
    num_classes = len(class_names)
    y_pred = np.argmax(probabilities, axis=1)

    cm = confusion_matrix(y_true, y_pred, labels=np.arange(num_classes))
    support = cm.sum(axis=1)
    present = support > 0
    per_class = np.zeros(num_classes)
    np.divide(np.diag(cm), support, out=per_class, where=present)

    true_class_proba = probabilities[np.arange(len(y_true)), y_true]
    log_loss = float(-np.mean(np.log(np.clip(true_class_proba, LOG_LOSS_EPS, 1.0))))

    return EvaluationMetrics(
        macro_accuracy=float(per_class[present].mean()),
        micro_accuracy=float(accuracy_score(y_true, y_pred)),
        log_loss=log_loss,
        per_class_accuracy={name: float(per_class[i]) for i, name in enumerate(class_names) if present[i]},
        confusion_matrix=cm.tolist()
    )


class WasteModelEvaluator:
    """
    Scores a fitted model against a held-out manifest; never modifies the model
    """

    def __init__(self, images_path=IMAGES_PATH, reports_path=None):
        """
        Initialize evaluator

        Args:
            images_path: Root that manifest paths are relative to
            reports_path: Where metrics.json, the classification report and
                the confusion matrix plot go (None = no files written)
        """
        self.images_path = Path(images_path)
        self.reports_path = Path(reports_path) if reports_path else None

    def evaluate(self, model, manifest):
        """
        Evaluate a TrainedModel on a test manifest

        Raises:
            TrainingFailure: empty manifest, label unseen at training time,
                or an image that cannot be decoded
        """
        if len(manifest) == 0:
            raise TrainingFailure("Test manifest has no rows; add test images and run setup")

        try:
            y_true = model.encode(manifest[LABEL_COLUMN])
        except ValueError as e:
            unseen = sorted(set(manifest[LABEL_COLUMN]) - set(model.classes))
            raise TrainingFailure(
                f"Test labels {unseen} were not seen during training"
            ) from e

        loader = ImageLoader(self.images_path, model.img_size)
        try:
            images = loader.load(manifest[IMAGE_PATH_COLUMN], desc="Loading test images")
        except OSError as e:
            raise TrainingFailure(f"Cannot load test image: {e}") from e

        probabilities = model.predict_proba(images)
        metrics = calculate_metrics(y_true, probabilities, model.classes)

        print(f"    Macro Accuracy: {metrics.macro_accuracy:.2%}")
        print(f"    Micro Accuracy: {metrics.micro_accuracy:.2%}")
        print(f"    Log Loss: {metrics.log_loss:.4f}")

        if self.reports_path is not None:
            self.save_reports(metrics, y_true, np.argmax(probabilities, axis=1), model.classes)

        return metrics

    def save_reports(self, metrics, y_true, y_pred, class_names):
        """Write metrics.json, classification_report.txt and confusion_matrix.png"""
        self.reports_path.mkdir(parents=True, exist_ok=True)

        with open(self.reports_path / 'metrics.json', 'w', encoding='utf-8') as f:
            json.dump(metrics._asdict(), f, indent=4)

        labels = list(range(len(class_names)))
        report = classification_report(
            y_true, y_pred, labels=labels, target_names=class_names,
            digits=4, zero_division=0
        )
        (self.reports_path / 'classification_report.txt').write_text(report, encoding='utf-8')

        self.plot_confusion_matrix(np.asarray(metrics.confusion_matrix), class_names)
        print(f"    ✓ Evaluation reports saved to: {self.reports_path}")

    def plot_confusion_matrix(self, cm, class_names):
        # File output only; no window
        plt.switch_backend('Agg')
        plt.figure(figsize=(8, 7))
        sns.heatmap(cm, annot=True, fmt='d', cmap='Blues',
                    xticklabels=class_names, yticklabels=class_names,
                    cbar_kws={'label': 'Count'},
                    linewidths=0.5, linecolor='gray')
        plt.title('Confusion Matrix', fontsize=14, fontweight='bold')
        plt.ylabel('True Label', fontsize=12)
        plt.xlabel('Predicted Label', fontsize=12)
        plt.xticks(rotation=45, ha='right')
        plt.tight_layout()
        plt.savefig(self.reports_path / 'confusion_matrix.png', dpi=150, bbox_inches='tight')
        plt.close()
