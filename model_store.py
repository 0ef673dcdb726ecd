import json
import os
import tempfile
import zipfile
from datetime import datetime
from pathlib import Path

from config import MODEL_PATH, ARTIFACT_FORMAT_VERSION
from errors import ModelNotFound
from train_models import TrainedModel, get_default_trainer


METADATA_FILE = 'metadata.json'
PAYLOAD_DIR = 'model'


class ModelStore:
    """
    Persists a TrainedModel as a single versioned zip artifact

    Layout inside the zip:
        metadata.json   format version, trainer name, label classes,
                        input schema, training config and history
        model/...       whatever the trainer's save() writes
    """

    def __init__(self, trainer=None):
        """
        Args:
            trainer: BackboneTrainer used to deserialize the head on load
                (default: the Keras trainer, created on first load)
        """
        self.trainer = trainer

    def save(self, model, schema, path=MODEL_PATH):
        """
        Write (or overwrite) the artifact at path

        The zip is built next to the target and moved into place only once
        complete, so a failed save leaves any previous artifact intact.

        Raises:
            OSError: parent directory missing or not writable
        """
        path = Path(path)
        if not path.parent.is_dir():
            raise FileNotFoundError(f"Model directory does not exist: {path.parent}")

        metadata = {
            'format_version': ARTIFACT_FORMAT_VERSION,
            'created_at': datetime.now().isoformat(timespec='seconds'),
            'trainer': model.trainer.name,
            'classes': model.classes,
            'schema': schema,
            'training_config': model.training_config,
            'history': model.history,
        }

        tmp_path = path.with_name(path.name + '.tmp')
        try:
            with tempfile.TemporaryDirectory() as tmp_dir:
                payload_path = Path(tmp_dir) / PAYLOAD_DIR
                payload_path.mkdir()
                model.trainer.save(model.head, payload_path)

                with zipfile.ZipFile(tmp_path, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
                    zf.writestr(METADATA_FILE, json.dumps(metadata, indent=2))
                    for file_path in sorted(payload_path.rglob('*')):
                        if file_path.is_file():
                            arcname = f'{PAYLOAD_DIR}/{file_path.relative_to(payload_path).as_posix()}'
                            zf.write(file_path, arcname)
            os.replace(tmp_path, path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

        print(f"    ✓ Model saved: {path.name}")
        return path

    def load(self, path=MODEL_PATH):
        """
        Load an artifact written by save()

        Returns:
            (TrainedModel, schema)

        Raises:
            ModelNotFound: artifact absent, corrupt or of another format version
        """
        path = Path(path)
        if not path.is_file():
            raise ModelNotFound(f"No model artifact at {path}")

        try:
            with zipfile.ZipFile(path) as zf:
                metadata = json.loads(zf.read(METADATA_FILE).decode('utf-8'))
                version = metadata.get('format_version')
                if version != ARTIFACT_FORMAT_VERSION:
                    raise ModelNotFound(
                        f"Model artifact {path} has format version {version}, "
                        f"expected {ARTIFACT_FORMAT_VERSION}; retrain the model"
                    )

                if self.trainer is None:
                    self.trainer = get_default_trainer()
                if metadata['trainer'] != self.trainer.name:
                    raise ModelNotFound(
                        f"Model artifact {path} was produced by '{metadata['trainer']}', "
                        f"cannot load it with '{self.trainer.name}'"
                    )

                members = [n for n in zf.namelist() if n.startswith(PAYLOAD_DIR + '/')]
                with tempfile.TemporaryDirectory() as tmp_dir:
                    zf.extractall(tmp_dir, members)
                    head = self.trainer.load(Path(tmp_dir) / PAYLOAD_DIR)

            schema = metadata['schema']
            model = TrainedModel(
                metadata['classes'], head, self.trainer,
                schema=schema,
                history=metadata.get('history'),
                training_config=metadata.get('training_config')
            )
        except ModelNotFound:
            raise
        except (zipfile.BadZipFile, KeyError, ValueError, TypeError, OSError) as e:
            raise ModelNotFound(f"Model artifact {path} is corrupt: {e}") from e

        return model, schema
