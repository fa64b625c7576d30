"""
Schema Validator - structural checks for untrusted, JSON-shaped model output.

Shapes are declarative: a type name, an optional flag and nested
properties/items. validate() never raises; problems are collected into a
ValidationResult with dotted/bracketed paths.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


STRING = "string"
NUMBER = "number"
BOOLEAN = "boolean"
OBJECT = "object"
ARRAY = "array"


@dataclass
class Shape:
    """Declarative description of an expected value."""
    type: str
    optional: bool = False
    properties: Optional[Dict[str, "Shape"]] = None
    items: Optional["Shape"] = None


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, (int, float)):
        return NUMBER
    if isinstance(value, str):
        return STRING
    if isinstance(value, list):
        return ARRAY
    if isinstance(value, dict):
        return OBJECT
    return type(value).__name__


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str) and value.strip():
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def _child(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _display(path: str) -> str:
    return path or "<root>"


def validate(value: Any, shape: Shape, path: str = "") -> ValidationResult:
    """
    Validate value against shape.

    Numbers accept numeric-looking strings. Object and array mismatches
    short-circuit with a single error; nested errors bubble up with their
    full path.
    """
    if value is None:
        if shape.optional:
            return ValidationResult(valid=True)
        return ValidationResult(valid=False, errors=[f"Missing required value at {_display(path)}"])

    errors: List[str] = []

    if shape.type == OBJECT:
        if not isinstance(value, dict):
            return ValidationResult(
                valid=False,
                errors=[f"Expected object at {_display(path)}, got {_type_name(value)}"],
            )
        for key, prop_shape in (shape.properties or {}).items():
            errors.extend(validate(value.get(key), prop_shape, _child(path, key)).errors)

    elif shape.type == ARRAY:
        if not isinstance(value, list):
            return ValidationResult(
                valid=False,
                errors=[f"Expected array at {_display(path)}, got {_type_name(value)}"],
            )
        if shape.items is not None:
            for i, item in enumerate(value):
                errors.extend(validate(item, shape.items, f"{path}[{i}]").errors)

    elif shape.type == NUMBER:
        if not _is_numeric(value):
            errors.append(f"Expected number at {_display(path)}, got {_type_name(value)}")

    elif shape.type == STRING:
        if not isinstance(value, str):
            errors.append(f"Expected string at {_display(path)}, got {_type_name(value)}")

    elif shape.type == BOOLEAN:
        if not isinstance(value, bool):
            errors.append(f"Expected boolean at {_display(path)}, got {_type_name(value)}")

    else:
        errors.append(f"Unknown shape type '{shape.type}' at {_display(path)}")

    return ValidationResult(valid=not errors, errors=errors)


# ============================================================================
# Agent Output Shapes
# ============================================================================

SHOT_SHAPE = Shape(OBJECT, properties={
    "shotType": Shape(STRING),
    "angle": Shape(STRING),
    "movement": Shape(STRING),
    "visual": Shape(STRING),
    "audio": Shape(STRING),
    "duration": Shape(NUMBER),
})

SCENE_SHAPE = Shape(OBJECT, properties={
    "id": Shape(STRING, optional=True),
    "location": Shape(STRING),
    "summary": Shape(STRING),
    "shots": Shape(ARRAY, items=SHOT_SHAPE),
})

VISUALIZER_SHAPE = Shape(OBJECT, properties={
    "visualPrompt": Shape(STRING),
    "negativePrompt": Shape(STRING, optional=True),
    "paramSettings": Shape(STRING, optional=True),
    "isKeyframe": Shape(BOOLEAN, optional=True),
    "keyframeReason": Shape(STRING, optional=True),
    "visualPromptStart": Shape(STRING, optional=True),
    "visualPromptEnd": Shape(STRING, optional=True),
})

MOTION_SHAPE = Shape(OBJECT, properties={
    "motionPrompt": Shape(STRING),
    "motionParameters": Shape(STRING, optional=True),
})

INTENT_SHAPE = Shape(OBJECT, properties={
    "hasSaveIntent": Shape(BOOLEAN),
    "targetFile": Shape(STRING, optional=True),
    "reason": Shape(STRING, optional=True),
})

BACKGROUND_ISSUE_SHAPE = Shape(OBJECT, properties={
    "type": Shape(STRING),
    "severity": Shape(STRING),
    "description": Shape(STRING),
    "suggestion": Shape(STRING, optional=True),
})

BACKGROUND_CHECK_SHAPE = Shape(OBJECT, properties={
    "pass": Shape(BOOLEAN),
    "summary": Shape(STRING),
    "issues": Shape(ARRAY, items=BACKGROUND_ISSUE_SHAPE),
})
