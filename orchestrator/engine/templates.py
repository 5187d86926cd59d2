# ============================================================================
# TEMPLATE RESOLUTION ENGINE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Template resolution with Jinja2
# PURPOSE: Resolve {{ }} expressions in node parameters against the context
# CREATED: 19 OCT 2026
# ============================================================================
"""
Template Resolution Engine

Resolves template expressions in node parameters before the node action runs.
The render context is the execution context itself, plus:

- {{ context.key }} - explicit access to the same map
- {{ env.VAR_NAME }} - CLAIMFLOW_VAR_NAME from the environment; nothing
  outside that prefix is readable, so DATABASE_URL, POSTGRES_* and
  PORTAL_ENCRYPTION_KEY never reach a rendered parameter

Examples:
    send_email:
      to: "{{ recipient_email }}"
      subject: "Claim {{ carrier_guarantee_claim_number }} filed"

A parameter that is a single expression keeps the type of the value it
resolves to (so "{{ analysis.claim_amount }}" stays a number).
"""

import os
import re
import logging
from typing import Any, Dict, Optional
from jinja2 import Environment, BaseLoader, StrictUndefined, TemplateError, Undefined

from core.errors import NodeActionError

logger = logging.getLogger(__name__)


class TemplateResolutionError(NodeActionError):
    """Raised when template resolution fails."""
    pass


def dollars(cents: Any) -> str:
    """Format an integer cent amount (CaseRecord.claimed_amount) as 125.50."""
    return f"{int(cents) / 100:.2f}"


# Filters available to node parameters
CLAIM_FILTERS = {"dollars": dollars}


class TemplateResolver:
    """
    Jinja2-based template resolver for node parameters.

    Thread-safe, can be reused across multiple resolutions.
    """

    def __init__(self, env_prefix: str = "CLAIMFLOW_"):
        self._env = Environment(
            loader=BaseLoader(),
            autoescape=False,
            undefined=StrictUndefined,
        )
        self._env.filters.update(CLAIM_FILTERS)
        self._env_prefix = env_prefix
        self._template_pattern = re.compile(r'\{\{.*?\}\}')

    def resolve(self, params: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        """
        Resolve all template expressions in a params dict.

        Args:
            params: Dictionary containing template expressions
            context: Execution context

        Returns:
            New dict with all templates resolved

        Raises:
            TemplateResolutionError: If template cannot be resolved
        """
        if not self.has_templates(params):
            return dict(params)

        render_context = {
            **context,
            "context": context,
            "env": _EnvAccessor(self._env_prefix),
        }
        return self._resolve_value(params, render_context)

    def _resolve_value(self, value: Any, context: Dict[str, Any]) -> Any:
        if isinstance(value, str):
            return self._resolve_string(value, context)
        elif isinstance(value, dict):
            return {k: self._resolve_value(v, context) for k, v in value.items()}
        elif isinstance(value, list):
            return [self._resolve_value(item, context) for item in value]
        return value

    def _resolve_string(self, value: str, context: Dict[str, Any]) -> Any:
        if '{{' not in value:
            return value

        # Single expression: evaluate natively so the resolved type is kept
        stripped = value.strip()
        if stripped.startswith('{{') and stripped.endswith('}}'):
            inner = stripped[2:-2]
            if '{{' not in inner and '}}' not in inner:
                return self._evaluate_expression(value, inner.strip(), context)

        try:
            return self._env.from_string(value).render(context)
        except TemplateError as e:
            raise TemplateResolutionError(f"Failed to resolve '{value}': {e}", cause=e)
        except Exception as e:
            # Runtime errors inside the expression (bad arithmetic, filter input)
            raise TemplateResolutionError(f"Failed to resolve '{value}': {type(e).__name__}: {e}", cause=e)

    def _evaluate_expression(self, value: str, expression: str, context: Dict[str, Any]) -> Any:
        try:
            result = self._env.compile_expression(expression, undefined_to_none=False)(**context)
        except TemplateError as e:
            raise TemplateResolutionError(f"Failed to resolve '{value}': {e}", cause=e)
        except Exception as e:
            raise TemplateResolutionError(f"Failed to resolve '{value}': {type(e).__name__}: {e}", cause=e)

        if isinstance(result, Undefined):
            raise TemplateResolutionError(f"Failed to resolve '{value}': undefined value")
        return result

    def has_templates(self, value: Any) -> bool:
        """Recursively check for template expressions."""
        if isinstance(value, str):
            return bool(self._template_pattern.search(value))
        elif isinstance(value, dict):
            return any(self.has_templates(v) for v in value.values())
        elif isinstance(value, list):
            return any(self.has_templates(item) for item in value)
        return False


class _EnvAccessor:
    """Read-only view of the prefixed environment variables."""

    def __init__(self, prefix: str):
        if not prefix:
            raise ValueError("env accessor requires a variable prefix")
        self._prefix = prefix

    def __getattr__(self, name: str) -> str:
        if name.startswith("_"):
            raise AttributeError(name)
        value = os.environ.get(f"{self._prefix}{name}")
        if value is None:
            raise AttributeError(f"Environment variable not found: {self._prefix}{name}")
        return value


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

_resolver: Optional[TemplateResolver] = None


def get_resolver() -> TemplateResolver:
    """Get shared template resolver instance."""
    global _resolver
    if _resolver is None:
        _resolver = TemplateResolver()
    return _resolver


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "TemplateResolver",
    "TemplateResolutionError",
    "get_resolver",
    "dollars",
    "CLAIM_FILTERS",
]
