import os

from casbin.model import Model

MODEL_PATH = os.path.join(os.path.dirname(__file__), "rbac_model.conf")


def new_model() -> Model:
    """A fresh, empty RBAC model."""
    m = Model()
    m.load_model(MODEL_PATH)
    return m
