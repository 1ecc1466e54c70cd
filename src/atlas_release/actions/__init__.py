# src/atlas_release/actions/__init__.py
"""
Actions embutidas do Atlas Release.

    - checkout        → CheckoutAction
    - run-command     → RunCommandAction
    - upload-artifact → UploadArtifactAction

`default_registry()` devolve um ActionRegistry com as três registradas.
"""

from atlas_release.core.pipeline.registry import ActionRegistry

from .checkout import CheckoutAction
from .command import RunCommandAction
from .upload import UploadArtifactAction


def default_registry() -> ActionRegistry:
    return ActionRegistry.of([CheckoutAction(), RunCommandAction(), UploadArtifactAction()])


__all__ = [
    "CheckoutAction",
    "RunCommandAction",
    "UploadArtifactAction",
    "default_registry",
]
