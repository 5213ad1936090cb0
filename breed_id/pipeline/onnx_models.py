import numpy as np
import onnxruntime as ort
from typing import Tuple

from .models import InferenceModel


class ONNXBreedModel(InferenceModel):
    """ONNX breed classification model wrapper."""

    def __init__(self, model_path: str):
        self.session = ort.InferenceSession(str(model_path))
        self.input_name = self.session.get_inputs()[0].name
        # Channel-last: (batch, height, width, channels)
        self.input_size: Tuple[int, int] = tuple(self.session.get_inputs()[0].shape[1:3])

    def predict(self, tensor: np.ndarray) -> np.ndarray:
        """Return the confidence vector for a (1, H, W, 3) tensor."""
        confidences = self.session.run(
            None, {self.input_name: tensor.astype(np.float32, copy=False)}
        )[0][0]
        return np.asarray(confidences, dtype=np.float32)
