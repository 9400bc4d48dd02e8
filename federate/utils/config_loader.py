import os
import re
from typing import Any, Dict, Optional

import yaml

from federate.utils.logging import logger

# Matches ${VAR} or ${env:VAR}; group 1 is the variable name
ENV_PATTERN = re.compile(r"\$\{(?:env:)?([A-Za-z0-9_]+)\}")

# List-valued keys that accumulate across imports instead of being replaced
APPENDABLE_KEYS = ("sheets",)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override dictionary into base dictionary.

    Rules:
    1. Dicts are merged recursively.
    2. ``sheets`` lists are appended, so a workbook can be split across files.
    3. Other types (and other lists) are overwritten by the override.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        elif (
            key in APPENDABLE_KEYS
            and isinstance(value, list)
            and isinstance(result.get(key), list)
        ):
            logger.debug(
                "Appending list during merge",
                key=key,
                existing_count=len(result[key]),
                new_count=len(value),
            )
            result[key] = result[key] + value
        else:
            if key in result:
                logger.debug("Overwriting key during merge", key=key)
            result[key] = value
    return result


def load_yaml_with_env(path: str, env: Optional[str] = None) -> Dict[str, Any]:
    """Load a federation YAML file with environment variable substitution and imports.

    Supports:
    - ${VAR_NAME} / ${env:VAR_NAME} substitution
    - 'imports' list of paths relative to the importing file
    - 'environments' overrides selected by the env param

    Args:
        path: Path to YAML file
        env: Environment name (e.g., 'prod', 'dev') to apply overrides

    Returns:
        Parsed dictionary (merged with imports and env overrides)

    Raises:
        FileNotFoundError: If the file or one of its imports does not exist
        ValueError: If an environment variable is missing
        yaml.YAMLError: If YAML parsing fails
    """
    logger.debug("Loading YAML configuration", path=path, env=env)

    if not os.path.exists(path):
        logger.error("Configuration file not found", path=path)
        raise FileNotFoundError(f"YAML file not found: {path}")

    abs_path = os.path.abspath(path)
    base_dir = os.path.dirname(abs_path)

    with open(abs_path, "r", encoding="utf-8") as f:
        content = f.read()

    def replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            logger.error("Missing required environment variable", variable=var_name, file=abs_path)
            raise ValueError(f"Missing environment variable: {var_name}")
        return value

    substituted_content = ENV_PATTERN.sub(replace_env, content)

    try:
        data = yaml.safe_load(substituted_content) or {}
    except yaml.YAMLError as e:
        logger.error("YAML parsing failed", path=abs_path, error=str(e))
        raise

    imports = data.pop("imports", [])
    if imports:
        if isinstance(imports, str):
            imports = [imports]

        merged_data = data.copy()
        for import_path in imports:
            if not os.path.isabs(import_path):
                full_import_path = os.path.join(base_dir, import_path)
            else:
                full_import_path = import_path

            if not os.path.exists(full_import_path):
                logger.error(
                    "Imported configuration file not found",
                    import_path=import_path,
                    parent_file=abs_path,
                )
                raise FileNotFoundError(f"Imported YAML file not found: {full_import_path}")

            imported_data = load_yaml_with_env(full_import_path, env=env)
            merged_data = _deep_merge(merged_data, imported_data)

        data = merged_data
        logger.debug("All imports processed and merged", import_count=len(imports))

    environments = data.pop("environments", {}) or {}
    if env:
        if env in environments:
            logger.debug(
                "Applying environment overrides",
                env=env,
                override_keys=list(environments[env].keys()),
            )
            data = _deep_merge(data, environments[env])
        else:
            logger.debug(
                "No environment override found",
                env=env,
                available_environments=list(environments.keys()),
            )

    return data
