"""Generate the Angular client for the exposed models.

The generated module defines a ``FireModel`` base speaking the JSON API of
:mod:`ember.model_controllers` and registers a ``FireModels`` service with
one instance per model.
"""

from __future__ import annotations

from typing import Iterable

from .models import Model
from .templates import create_jinja_env

MODELS_SCRIPT_PATH = "/scripts/fire-models.js"
MODELS_TEMPLATE = "models.js.j2"


def _model_context(model: Model, prefix: str) -> dict[str, object]:
    return {
        "name": model.name,
        "endpoint": f"{prefix}/{model.plural}",
        "is_authenticator": model.is_authenticator(),
        "associations": [
            {"name": property_.name, "suffix": property_.name[:1].upper() + property_.name[1:]}
            for property_ in model.associations()
        ],
    }


def generate_models_js(models: Iterable[Model], module_name: str = "app", *, api_prefix: tuple[str, ...] = ("api",)) -> str:
    prefix = "/" + "/".join(component.strip("/") for component in api_prefix if component.strip("/"))
    if prefix == "/":
        prefix = ""
    env = create_jinja_env()
    template = env.get_template(MODELS_TEMPLATE)
    return template.render(
        module_name=module_name,
        models=[_model_context(model, prefix) for model in models],
    )


__all__ = ["MODELS_SCRIPT_PATH", "generate_models_js"]
