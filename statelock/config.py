"""
Configuration loader for Statelock.

Reads Terraform-style HCL with python-hcl2 and converts it into the models the
orchestrator works with:

    terraform { backend "s3" { bucket = "..." key = "..." region = "..."
                               dynamodb_table = "..." encrypt = true } }
    provider "aws" { region = "us-east-1" }
    variable "instance_type" { default = "t3.micro" }
    resource "aws_instance" "web" { ami = "ami-..." instance_type = var.instance_type }
    output "public_ip" { value = aws_instance.web.public_ip }
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import hcl2

from .errors import ParseError
from .models import BackendConfig, BackendType, OutputSpec, ResourceSpec, StateDocument

logger = logging.getLogger(__name__)

_INTERPOLATION = re.compile(r"^\$\{(.+)\}$")
_VAR_REFERENCE = re.compile(r"\$\{var\.([A-Za-z_][A-Za-z0-9_-]*)\}")
_META_KEYS = ("__start_line__", "__end_line__", "__is_block__")


@dataclass
class Configuration:
    """Parsed configuration."""

    resources: List[ResourceSpec] = field(default_factory=list)
    outputs: List[OutputSpec] = field(default_factory=list)
    providers: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    variables: Dict[str, Any] = field(default_factory=dict)
    backend: Optional[BackendConfig] = None


def _unquote(value: Any) -> Any:
    """Normalize python-hcl2 values: drop meta keys and literal string quotes."""
    if isinstance(value, dict):
        return {_unquote(k): _unquote(v) for k, v in value.items() if k not in _META_KEYS}
    if isinstance(value, list):
        return [_unquote(v) for v in value]
    if isinstance(value, str) and len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


def _blocks(data: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    blocks = data.get(name, [])
    return blocks if isinstance(blocks, list) else [blocks]


def _substitute_variables(value: Any, variables: Dict[str, Any], file_path: str) -> Any:
    if isinstance(value, dict):
        return {k: _substitute_variables(v, variables, file_path) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_variables(v, variables, file_path) for v in value]
    if not isinstance(value, str):
        return value

    def lookup(name: str) -> Any:
        if name not in variables:
            raise ParseError(f"Reference to undeclared variable '{name}'", file_path)
        return variables[name]

    # Whole-value references keep the variable's type
    whole = _VAR_REFERENCE.fullmatch(value)
    if whole:
        return lookup(whole.group(1))
    return _VAR_REFERENCE.sub(lambda m: str(lookup(m.group(1))), value)


def _parse_backend(terraform_blocks: List[Dict[str, Any]]) -> Optional[BackendConfig]:
    for block in terraform_blocks:
        for backend in _blocks(block, "backend"):
            for backend_type, params in backend.items():
                if backend_type == "s3":
                    return BackendConfig(
                        type=BackendType.S3,
                        bucket=params.get("bucket"),
                        key=params.get("key"),
                        region=params.get("region"),
                        lock_table=params.get("dynamodb_table"),
                        encrypt=_as_bool(params.get("encrypt", True)),
                    )
                if backend_type == "local":
                    return BackendConfig(type=BackendType.LOCAL, path=params.get("path"))
                raise ParseError(f"Unsupported backend type '{backend_type}'")
    return None


def parse_configuration(content: str, file_path: str = "<string>",
                        overrides: Optional[Dict[str, Any]] = None) -> Configuration:
    """
    Parse HCL content into a Configuration.

    Args:
        content: HCL source
        file_path: Name used in error messages
        overrides: Variable values taking precedence over declared defaults

    Returns:
        Configuration

    Raises:
        ParseError: If the content is not valid HCL or is semantically invalid
    """
    try:
        data = _unquote(hcl2.loads(content))
    except Exception as e:
        raise ParseError(f"Invalid HCL syntax: {e}", file_path) from e

    config = Configuration()

    for block in _blocks(data, "variable"):
        for name, body in block.items():
            config.variables[name] = body.get("default")
    config.variables.update(overrides or {})

    for block in _blocks(data, "provider"):
        for name, body in block.items():
            config.providers[name] = _substitute_variables(body, config.variables, file_path)

    seen = set()
    for block in _blocks(data, "resource"):
        for resource_type, instances in block.items():
            for name, body in instances.items():
                spec = ResourceSpec(
                    type=resource_type,
                    name=name,
                    attributes=_substitute_variables(body, config.variables, file_path),
                )
                if spec.address in seen:
                    raise ParseError(f"Duplicate resource '{spec.address}'", file_path)
                seen.add(spec.address)
                config.resources.append(spec)

    for block in _blocks(data, "output"):
        for name, body in block.items():
            config.outputs.append(OutputSpec(
                name=name,
                value=_substitute_variables(body.get("value"), config.variables, file_path),
                description=body.get("description"),
                sensitive=_as_bool(body.get("sensitive", False)),
            ))

    try:
        config.backend = _parse_backend(_blocks(data, "terraform"))
    except ParseError as e:
        raise ParseError(e.message, file_path) from e
    except ValueError as e:
        raise ParseError(f"Invalid backend configuration: {e}", file_path) from e

    logger.info(f"Loaded {len(config.resources)} resources and {len(config.outputs)} outputs from {file_path}")
    return config


def load_configuration(path: Union[str, Path], overrides: Optional[Dict[str, Any]] = None) -> Configuration:
    """
    Load and parse an HCL configuration file.

    Raises:
        ParseError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ParseError("Configuration file not found", str(path))
    except UnicodeDecodeError as e:
        raise ParseError(f"File encoding error: {e}", str(path)) from e
    return parse_configuration(content, str(path), overrides)


def resolve_output(value: Any, state: StateDocument) -> Any:
    """
    Resolve an output value against the state document.

    `${type.name.attribute}` references are looked up in the recorded
    resources (`id` resolves to the provider-assigned id). Anything else is
    returned unchanged.
    """
    if not isinstance(value, str):
        return value
    match = _INTERPOLATION.match(value)
    reference = match.group(1) if match else value
    parts = reference.split(".")
    if len(parts) != 3:
        return value

    descriptor = state.get(f"{parts[0]}.{parts[1]}")
    if descriptor is None:
        return value
    if parts[2] == "id":
        return descriptor.id
    return descriptor.attributes.get(parts[2])
