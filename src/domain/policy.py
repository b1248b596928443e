from src.domain.entities import Actor, Review, Transaction
from src.rules.models import Rules


class PolicyEngine:
    def __init__(self, rules: Rules):
        self.rules = rules

    def check_permission(self, actor: Actor | None, action: str) -> bool:
        """
        Check if the actor's role allows the action.

        Order of precedence:
        1. Public Permissions (Global)
        2. Role-Based Access Control (RBAC), including "*" and "scope:*"
        """
        if action in self.rules.rbac.public_permissions:
            return True

        if actor is None:
            return False

        allowed_actions = self.rules.rbac.roles.get(actor.role, [])
        if "*" in allowed_actions or action in allowed_actions:
            return True

        # Scoped wildcard: "reviews:*" matches "reviews:moderate"
        if ":" in action:
            scope = action.split(":")[0]
            if f"{scope}:*" in allowed_actions:
                return True

        return False

    def is_admin(self, actor: Actor | None) -> bool:
        return actor is not None and actor.role == "admin"

    def can_resolve_refunds(self, actor: Actor | None) -> bool:
        # Refund resolution stays admin-only regardless of RBAC wildcards
        return self.is_admin(actor)

    def can_view_all_transactions(self, actor: Actor | None) -> bool:
        return self.is_admin(actor)

    def can_view_transaction(self, actor: Actor, tx: Transaction) -> bool:
        if actor.user_id in (tx.buyer_id, tx.seller_id):
            return True
        return self.is_admin(actor)

    def can_moderate_reviews(self, actor: Actor | None) -> bool:
        # Report queue and approve/remove belong to the admin surface only
        return self.is_admin(actor)

    def can_delete_review(self, actor: Actor, review: Review) -> bool:
        if review.user_id == actor.user_id:
            return True
        return actor.role in self.rules.reviews.elevated_roles
