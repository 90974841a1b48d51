"""Keyword classification of raw features into module categories and flow layers.

Layers follow the user journey:

1. entry and authentication
2. core features
3. advanced features (payments, integrations, analytics, AI)
4. admin and management
5. support and settings

Rules are consulted in declaration order and the first match wins. A
feature's title is checked against every rule before its description is
consulted, so a descriptive sentence never overrides what the title says.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from .schemas import Feature, ModuleCategory

RULESET_VERSION = "2025.1"

_NON_WORD = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class CategoryRule:
    category: ModuleCategory
    layer: int
    keywords: tuple[str, ...]


@dataclass(frozen=True)
class Classification:
    category: ModuleCategory
    layer: int
    keyword: str | None = None


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        ModuleCategory.authentication,
        1,
        (
            "auth",
            "authentication",
            "login",
            "log in",
            "logout",
            "log out",
            "sign up",
            "signup",
            "sign in",
            "signin",
            "register",
            "registration",
            "oauth",
            "sso",
            "password",
            "onboarding",
        ),
    ),
    CategoryRule(
        ModuleCategory.security,
        1,
        ("security", "encryption", "2fa", "mfa", "two factor", "multi factor", "rbac", "permission", "permissions", "access control"),
    ),
    CategoryRule(
        ModuleCategory.admin,
        4,
        ("admin", "administration", "administrator", "moderation", "moderator", "user management", "back office", "backoffice", "audit log"),
    ),
    CategoryRule(
        ModuleCategory.support,
        5,
        ("settings", "preferences", "notification", "notifications", "help", "faq", "support", "feedback", "documentation"),
    ),
    CategoryRule(
        ModuleCategory.payment,
        3,
        ("payment", "payments", "billing", "subscription", "subscriptions", "checkout", "invoice", "invoices", "pricing", "stripe", "paypal"),
    ),
    CategoryRule(
        ModuleCategory.ai_ml,
        3,
        ("ai", "ml", "machine learning", "recommendation", "recommendations", "chatbot", "gpt", "llm", "nlp"),
    ),
    CategoryRule(
        ModuleCategory.analytics,
        3,
        ("analytics", "metrics", "reporting", "report", "reports", "kpi", "kpis", "stats", "statistics", "insights"),
    ),
    CategoryRule(
        ModuleCategory.integration,
        3,
        ("integration", "integrations", "webhook", "webhooks", "api", "third party", "slack", "zapier"),
    ),
    CategoryRule(
        ModuleCategory.data,
        2,
        ("database", "storage", "upload", "uploads", "file", "files", "backup", "import", "export"),
    ),
)

DEFAULT_CLASSIFICATION = Classification(category=ModuleCategory.core, layer=2)


def normalize(text: str) -> str:
    """Lower-case ``text`` and collapse every non-alphanumeric run into one space."""
    return " ".join(_NON_WORD.sub(" ", text.lower()).split())


class CategoryClassifier:
    """Deterministic, table-driven feature classifier."""

    def __init__(
        self,
        rules: Sequence[CategoryRule] = CATEGORY_RULES,
        default: Classification = DEFAULT_CLASSIFICATION,
        version: str = RULESET_VERSION,
    ) -> None:
        self._rules = tuple(rules)
        self._default = default
        self.version = version

    def classify(self, feature: Feature) -> Classification:
        for text in (feature.title, feature.description):
            match = self._match(normalize(text or ""))
            if match is not None:
                return match
        return self._default

    def _match(self, text: str) -> Classification | None:
        if not text:
            return None
        padded = f" {text} "
        for rule in self._rules:
            for keyword in rule.keywords:
                if f" {keyword} " in padded:
                    return Classification(category=rule.category, layer=rule.layer, keyword=keyword)
        return None


__all__ = [
    "CategoryRule",
    "Classification",
    "CategoryClassifier",
    "CATEGORY_RULES",
    "DEFAULT_CLASSIFICATION",
    "RULESET_VERSION",
    "normalize",
]
