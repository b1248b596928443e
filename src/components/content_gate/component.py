"""
Content gate component.

Pure functions deciding how much of a rule's priced content a viewer
sees. Access itself is decided by the entitlement component; the gate
only shapes the view, per rule, so a list mixes full and masked items.
"""

from __future__ import annotations

from src.domain.entities import Actor, Rule
from src.rules.models import Rules

from .models import (
    ContentGateConfig,
    GateMode,
    RenderInput,
    RenderManyInput,
    RuleView,
)

# --- Pure Functions ---


def mask_query(query: str, limit: int, marker: str) -> str:
    """First `limit` characters of the query followed by the purchase marker."""
    return query[: max(limit, 0)] + marker


def _view(rule: Rule, query: str, masked: bool) -> RuleView:
    return RuleView(
        id=rule.id,
        owner_id=rule.owner_id,
        title=rule.title,
        query=query,
        metadata={} if masked else dict(rule.content.metadata),
        pricing=rule.pricing,
        statistics=rule.statistics,
        is_masked=masked,
        is_active=rule.is_active,
        created_at=rule.created_at,
        updated_at=rule.updated_at,
    )


def render(
    rule: Rule,
    actor: Actor | None,
    has_access: bool,
    config: ContentGateConfig | None = None,
    mode: GateMode = "detail",
) -> RuleView:
    """
    Render a rule for a viewer.

    Free rules, the owner, and entitled viewers get the full content.
    Anonymous viewers of a paid rule get a placeholder; signed-in viewers
    without access get a truncated preview.

    Args:
        rule: The rule to render
        actor: Viewer, or None when anonymous
        has_access: Entitlement decision for (actor, rule)
        config: Gate configuration
        mode: "detail" or "list" (list previews are shorter)

    Returns:
        RuleView with is_masked set when content was withheld
    """
    config = config or ContentGateConfig()
    owner = actor is not None and rule.is_owned_by(actor.user_id)

    if not rule.pricing.is_paid or owner or has_access:
        return _view(rule, rule.content.query, masked=False)

    if actor is None:
        return _view(rule, config.anonymous_placeholder, masked=True)

    preview = mask_query(rule.content.query, config.preview_chars(mode), config.purchase_marker)
    return _view(rule, preview, masked=True)


def render_many(
    rules: list[Rule],
    actor: Actor | None,
    access_lookup: set,
    config: ContentGateConfig | None = None,
) -> list[RuleView]:
    """
    Render a listing. access_lookup holds the ids of rules the viewer is
    entitled to (see entitlements.access_lookup_for).
    """
    config = config or ContentGateConfig()
    return [render(r, actor, r.id in access_lookup, config, mode="list") for r in rules]


# --- Run Function (Atomic Component Pattern) ---


def run(
    input_data: RenderInput | RenderManyInput,
    config: ContentGateConfig | None = None,
) -> RuleView | list[RuleView]:
    if isinstance(input_data, RenderInput):
        return render(
            input_data.rule, input_data.actor, input_data.has_access, config, input_data.mode
        )
    if isinstance(input_data, RenderManyInput):
        return render_many(input_data.rules, input_data.actor, input_data.access_lookup, config)

    raise TypeError(f"Unknown input type: {type(input_data)}")


# --- Configuration Loader ---


def load_config_from_rules(rules: Rules) -> ContentGateConfig:
    gate = rules.content_gate
    return ContentGateConfig(
        detail_preview_chars=gate.detail_preview_chars,
        list_preview_chars=gate.list_preview_chars,
        purchase_marker=gate.purchase_marker,
        anonymous_placeholder=gate.anonymous_placeholder,
    )
