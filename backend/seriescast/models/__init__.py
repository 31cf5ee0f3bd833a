from .series import Series
from .data_point import DataPoint
from .prediction import Prediction
from .evaluation import Evaluation


__all__ = ["Series", "DataPoint", "Prediction", "Evaluation"]
