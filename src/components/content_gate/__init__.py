"""
Content gate component.

Public API for rendering rules with priced content masked per viewer.
"""

from .component import (
    load_config_from_rules,
    mask_query,
    render,
    render_many,
    run,
)
from .models import (
    DEFAULT_ANONYMOUS_PLACEHOLDER,
    DEFAULT_PURCHASE_MARKER,
    ContentGateConfig,
    GateMode,
    RenderInput,
    RenderManyInput,
    RuleView,
)

__all__ = [
    # Functions
    "load_config_from_rules",
    "mask_query",
    "render",
    "render_many",
    "run",
    # Models
    "DEFAULT_ANONYMOUS_PLACEHOLDER",
    "DEFAULT_PURCHASE_MARKER",
    "ContentGateConfig",
    "GateMode",
    "RenderInput",
    "RenderManyInput",
    "RuleView",
]
