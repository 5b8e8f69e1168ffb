from typing import Any, Dict, List, Optional, Type

import pydantic
from pydantic import BaseModel


class FieldError(BaseModel):
    field: str
    message: str


class ValidationResult(BaseModel):
    """Outcome of validating a request payload: either ``value`` or ``errors``."""
    value: Optional[Any] = None
    errors: List[FieldError] = []

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def message(self) -> str:
        return "; ".join(f"{e.field}: {e.message}" if e.field else e.message for e in self.errors)

    def details(self) -> List[Dict[str, str]]:
        return [e.model_dump() for e in self.errors]


def validate_model(model: Type[BaseModel], payload: Any) -> ValidationResult:
    if not isinstance(payload, dict):
        return ValidationResult(errors=[FieldError(field="", message="Request body must be a JSON object")])
    try:
        return ValidationResult(value=model.model_validate(payload))
    except pydantic.ValidationError as e:
        errors = [
            FieldError(field=".".join(str(p) for p in err["loc"]), message=err["msg"])
            for err in e.errors()
        ]
        return ValidationResult(errors=errors)
