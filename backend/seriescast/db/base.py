from sqlalchemy.orm import declarative_base
from importlib import import_module

Base = declarative_base()

# Import model modules so their tables register with Base.metadata.
# These imports must come before any Base.metadata.create_all(...)
_model_modules = [
    "series",
    "data_point",
    "prediction",
    "evaluation",
]

for _mod in _model_modules:
    import_module(f"seriescast.models.{_mod}")
