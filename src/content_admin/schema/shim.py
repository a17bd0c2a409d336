"""Stand-in source for the host framework's content-declaration module.

Schema-definition modules import `define_collection`, `reference` and the
validation library from a module the host framework provides at build time.
That module does not exist outside the host, so the bundler substitutes this
source for it. Only the surface that matters for schema introspection is
reproduced.
"""

DEFAULT_VIRTUAL_MODULE = "site_content"
DEFAULT_VALIDATION_MODULE = "pydantic"

_SHIM_TEMPLATE = '''\
"""Minimal {virtual_module} for schema introspection."""

import {validation_module}
from {validation_module} import *  # noqa: F403


def define_collection(config=None, /, **options):
    return config if config is not None else options


def reference(collection):
    return {{"_type": "reference", "collection": collection}}
'''


def shim_source(
    virtual_module: str = DEFAULT_VIRTUAL_MODULE,
    validation_module: str = DEFAULT_VALIDATION_MODULE,
) -> str:
    """Render the shim module source.

    Args:
        virtual_module: Name the host framework uses for its content module.
        validation_module: Validation library re-exported by the shim.

    Returns:
        Python source for the shim module.
    """
    return _SHIM_TEMPLATE.format(
        virtual_module=virtual_module,
        validation_module=validation_module,
    )
