from utils.data_validator import DataValidator
from utils.dependencies import get_project_or_404, load_dataset, require_dataset

__all__ = [
    "DataValidator",
    "get_project_or_404",
    "load_dataset",
    "require_dataset",
]
