"""Schema validation for generation stage output and cross-artifact checks."""
from __future__ import annotations

from typing import Any, TypeVar

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import GenerationError
from .schemas import BackendSpec, FrontendSpec, UISpec

logger = structlog.get_logger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)

BUILT_IN_COMPONENTS = frozenset({"Button", "Input", "Card", "Modal", "Tabs", "Table"})


class SchemaValidator:
    """Accept a stage's raw output only when it conforms to the stage's document schema."""

    def validate(self, stage: str, schema: type[_ModelT], raw: Any) -> _ModelT:
        if isinstance(raw, schema):
            raw = raw.model_dump(by_alias=True)
        if not isinstance(raw, dict):
            raise GenerationError(
                f"Stage '{stage}' returned {type(raw).__name__}, expected a {schema.__name__} object",
                stage=stage,
            )
        try:
            return schema.model_validate(raw)
        except PydanticValidationError as exc:
            errors = exc.errors(include_url=False, include_context=False, include_input=False)
            logger.warning("validator.rejected", stage=stage, schema=schema.__name__, error_count=len(errors))
            raise GenerationError(
                f"Stage '{stage}' output does not match {schema.__name__}: {exc.error_count()} error(s)",
                stage=stage,
                details=errors,
            ) from exc

    def check_consistency(self, backend: BackendSpec, frontend: FrontendSpec, ui: UISpec) -> list[str]:
        """Return warnings for references between specs that do not resolve."""
        warnings: list[str] = []
        backend_paths = {api.path for api in backend.apis}
        for component in frontend.components:
            for api_path in component.apis or []:
                if api_path not in backend_paths:
                    warnings.append(f"Component {component.name} references unknown API: {api_path}")

        component_names = {component.name for component in frontend.components}
        for screen in ui.screens:
            for name in screen.components:
                if name not in component_names and name not in BUILT_IN_COMPONENTS:
                    warnings.append(f"Screen {screen.name} references unknown component: {name}")
        return warnings


__all__ = ["SchemaValidator", "BUILT_IN_COMPONENTS"]
