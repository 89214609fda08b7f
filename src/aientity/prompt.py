from __future__ import annotations

from .schema import FieldSpec, SchemaDescriptor

FIELD_SEPARATOR = ", "


def field_fragment(spec: FieldSpec) -> str:
    return f"{spec.name} ({spec.type.value}): {spec.label}"


def build_system_prompt(schema: SchemaDescriptor, *, many: bool = False) -> str:
    """Render the system instruction describing ``schema`` to the model.

    With ``many=True`` the model is also told which wrapper key to put the
    list under; the reply normalizer still accepts the other conventional
    shapes.
    """
    parts = [
        f"You are a JSON generator for the {schema.name} class. ",
        "Generate valid JSON for the following fields: ",
        FIELD_SEPARATOR.join(field_fragment(spec) for spec in schema.fields),
    ]
    if many:
        parts.append(
            f'. Return a JSON object whose "{schema.wrapper_keys[0]}" key holds an array '
            f"with one such object per {schema.name} mentioned in the input."
        )
    return "".join(parts)
